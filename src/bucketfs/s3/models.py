from dataclasses import dataclass, field
from datetime import datetime
from typing import List


@dataclass
class S3Object:
    key: str
    last_modified: datetime | None
    etag: str | None
    size: int
    storage_class: str | None = None


@dataclass
class S3ObjectHead:
    key: str
    size: int
    content_type: str | None
    last_modified: datetime | None
    etag: str | None


@dataclass
class S3ListObjectsRes:
    objects: List[S3Object]
    common_prefixes: List[str] = field(default_factory=list)
    next_continuation_token: str | None = None
    is_truncated: bool = False
