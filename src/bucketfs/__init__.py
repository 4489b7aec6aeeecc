from .manager import FileManager
from .memory import MemoryKeyStore
from .s3.client import S3Client
from .s3.store import S3KeyStore

__all__ = ["FileManager", "MemoryKeyStore", "S3Client", "S3KeyStore"]
