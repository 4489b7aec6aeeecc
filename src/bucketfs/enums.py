from enum import Enum


class Service(Enum):
    S3 = "s3"


class EntryType(str, Enum):
    FOLDER = "folder"
    FILE = "file"
