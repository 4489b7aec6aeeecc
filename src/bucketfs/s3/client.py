from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Literal
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag
from httpx import Response
from structlog import get_logger

from bucketfs.auth import uri_encode
from bucketfs.core import AwsClient, Payload
from bucketfs.enums import Service
from bucketfs.exceptions import HttpError

from .models import S3ListObjectsRes, S3Object, S3ObjectHead

logger = get_logger()

AmzAcl = (
    Literal["private"]
    | Literal["public-read"]
    | Literal["public-read-write"]
    | Literal["authenticated-read"]
    | Literal["aws-exec-read"]
    | Literal["bucket-owner-read"]
    | Literal["bucket-owner-full-control"]
)

Provider = Literal["amazonaws", "wasabisys", "digitaloceanspaces", "custom"]

TIMESTAMP_FORMATS = ("%Y-%m-%dT%H:%M:%S.%fZ", "%Y-%m-%dT%H:%M:%SZ")


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    for fmt in TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def _text(el: Tag, name: str) -> str | None:
    child = el.find(name)
    if isinstance(child, Tag):
        return child.text
    return None


class S3Client(AwsClient):
    def __init__(
        self,
        *,
        access_key: str,
        secret_key: str,
        region: str,
        provider: Provider,
        endpoint: str | None = None,
        path_style: bool | None = None,
    ):
        scheme = "https"
        match provider:
            case "digitaloceanspaces":
                host = f"{region}.{provider}.com"
            case "custom":
                if not endpoint:
                    raise ValueError("endpoint is required for a custom provider")
                parsed = urlparse(endpoint)
                scheme = parsed.scheme or "https"
                host = parsed.netloc or parsed.path
            case _:
                host = f"s3.{region}.{provider}.com"

        super().__init__(
            access_key=access_key,
            secret_key=secret_key,
            region=region,
            service=Service.S3,
            host=host,
            scheme=scheme,
        )
        self.provider = provider
        # MinIO and most self-hosted stores only resolve path-style URLs
        self.path_style = provider == "custom" if path_style is None else path_style

    def _locate(self, bucket: str, key: str = "") -> tuple[str, str]:
        """
        Returns the (host, endpoint) pair addressing `key` inside `bucket`.
        """
        if self.path_style:
            if not key:
                return self.host, f"/{bucket}"
            return self.host, f"/{bucket}/{key}"
        return f"{bucket}.{self.host}", f"/{key}"

    async def list_objects(
        self,
        bucket: str,
        *,
        count: int | None = None,
        prefix: str | None = None,
        delimiter: str | None = None,
        continuation_token: str | None = None,
    ) -> S3ListObjectsRes:
        """
        One page of a ListObjectsV2 listing.

        https://docs.aws.amazon.com/AmazonS3/latest/API/API_ListObjectsV2.html
        """
        host, endpoint = self._locate(bucket)
        res = await self._make_request(
            method="GET",
            action="ListObjectsV2",
            host=host,
            endpoint=endpoint,
            params={
                "list-type": 2,
                "max-keys": count,
                "prefix": prefix or None,
                "delimiter": delimiter,
                "continuation-token": continuation_token,
            },
        )

        soup = BeautifulSoup(res.content, "xml")

        s3_objects = []
        content_els = soup.find_all("Contents")
        for content_el in content_els:
            etag = _text(content_el, "ETag")
            storage_class = _text(content_el, "StorageClass")
            s3_object = S3Object(
                key=_text(content_el, "Key") or "",
                last_modified=_parse_timestamp(_text(content_el, "LastModified")),
                etag=etag.strip('"') if etag else None,
                size=int(_text(content_el, "Size") or 0),
                storage_class=storage_class.lower() if storage_class else None,
            )
            s3_objects.append(s3_object)

        common_prefixes = []
        for prefix_el in soup.find_all("CommonPrefixes"):
            common_prefix = _text(prefix_el, "Prefix")
            if common_prefix:
                common_prefixes.append(common_prefix)

        root = soup.find("ListBucketResult")
        next_token = None
        is_truncated = False
        if isinstance(root, Tag):
            next_token = _text(root, "NextContinuationToken")
            is_truncated = (_text(root, "IsTruncated") or "").lower() == "true"

        return S3ListObjectsRes(
            objects=s3_objects,
            common_prefixes=common_prefixes,
            next_continuation_token=next_token,
            is_truncated=is_truncated,
        )

    async def head_object(self, bucket: str, key: str) -> S3ObjectHead:
        host, endpoint = self._locate(bucket, key)
        res = await self._make_request(
            method="HEAD", action="HeadObject", host=host, endpoint=endpoint
        )
        last_modified = res.headers.get("Last-Modified")
        etag = res.headers.get("ETag")

        return S3ObjectHead(
            key=key,
            size=int(res.headers.get("Content-Length", 0)),
            content_type=res.headers.get("Content-Type"),
            last_modified=(
                parsedate_to_datetime(last_modified) if last_modified else None
            ),
            etag=etag.strip('"') if etag else None,
        )

    async def get_object(self, bucket: str, key: str) -> Response:
        """
        Returns the streamed response; the caller reads and closes it.
        """
        host, endpoint = self._locate(bucket, key)
        return await self._make_request(
            method="GET",
            action="GetObject",
            host=host,
            endpoint=endpoint,
            stream=True,
        )

    async def put_object(
        self,
        bucket: str,
        *,
        data: Payload,
        key: str,
        content_type: str | None = None,
        content_length: int | None = None,
        access: AmzAcl = "private",
    ):
        """
        Streamed bodies need `content_length`: S3 rejects chunked uploads.
        """
        host, endpoint = self._locate(bucket, key)
        extra_headers = {"x-amz-acl": access}
        if content_type:
            extra_headers["Content-Type"] = content_type
        if content_length is not None:
            extra_headers["Content-Length"] = str(content_length)

        res = await self._make_request(
            method="PUT",
            action="PutObject",
            host=host,
            endpoint=endpoint,
            extra_headers=extra_headers,
            data=data,
        )

        return res

    async def copy_object(
        self,
        bucket: str,
        *,
        source_key: str,
        key: str,
        source_bucket: str | None = None,
    ):
        """
        Server-side copy, metadata included.

        S3 may answer 200 and still report a failure in the body.
        """
        host, endpoint = self._locate(bucket, key)
        copy_source = uri_encode(
            f"/{source_bucket or bucket}/{source_key}", keep_slash=True
        )
        res = await self._make_request(
            method="PUT",
            action="CopyObject",
            host=host,
            endpoint=endpoint,
            extra_headers={"x-amz-copy-source": copy_source},
        )

        soup = BeautifulSoup(res.content, "xml")
        error_el = soup.find("Error")
        if isinstance(error_el, Tag):
            code = _text(error_el, "Code")
            message = _text(error_el, "Message")
            logger.error(
                "CopyObject failed after 200",
                source_key=source_key,
                key=key,
                aws_code=code,
                aws_message=message,
            )
            raise HttpError(
                500,
                "Copy failed",
                context="CopyObject",
                code=code,
                message=message,
            )

        return res

    async def delete_object(self, bucket: str, key: str):
        """
        S3 answers 204 whether or not the key existed.
        """
        host, endpoint = self._locate(bucket, key)
        return await self._make_request(
            method="DELETE", action="DeleteObject", host=host, endpoint=endpoint
        )
