from datetime import datetime, timezone
from typing import AsyncIterable, Dict

from bs4 import BeautifulSoup
from httpx import AsyncClient, Response
from structlog import get_logger

from .auth import (
    UNSIGNED_PAYLOAD,
    get_canonical_headers,
    get_canonical_querystring,
    get_hash,
    get_signature,
    get_signature_key,
    uri_encode,
)
from .enums import Service
from .exceptions import HttpError

logger = get_logger()

Payload = bytes | str | AsyncIterable[bytes] | None


class AwsClient:
    def __init__(
        self,
        *,
        access_key: str,
        secret_key: str,
        region: str,
        service: Service,
        host: str,
        scheme: str = "https",
    ):
        self.access_key = access_key
        self.secret_key = secret_key
        self.region = region
        self.service = service
        self.host = host
        self.scheme = scheme

        self._httpx = None

    async def connect(self):
        assert self._httpx is None, "AwsClient already connected"
        self._httpx = AsyncClient(timeout=None)

    async def disconnect(self):
        assert self._httpx is not None, "AwsClient is not connected"
        await self._httpx.aclose()
        self._httpx = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, *exc_info):
        await self.disconnect()

    async def _make_request(
        self,
        *,
        method: str,
        action: str,
        host: str | None = None,
        endpoint: str = "/",
        params: Dict | None = None,
        extra_headers: Dict | None = None,
        data: Payload = None,
        stream: bool = False,
    ) -> Response:
        """
        Send a SigV4-signed request.

        `action` only names the operation in logs and errors; S3 selects the
        operation through method, path and query string. Async iterable
        payloads are sent unsigned, everything else is hashed into the
        signature. With `stream=True` the body is left unread and the caller
        must close the response.
        """
        assert isinstance(self._httpx, AsyncClient)

        host = host or self.host

        utcnow = datetime.now(timezone.utc)
        amz_date = utcnow.strftime("%Y%m%dT%H%M%SZ")
        datestamp = utcnow.strftime("%Y%m%d")

        canonical_uri = uri_encode(endpoint, keep_slash=True)
        canonical_querystring = get_canonical_querystring(params)

        if data is None:
            payload_hash = get_hash("")
        elif isinstance(data, (bytes, str)):
            payload_hash = get_hash(data)
        else:
            payload_hash = UNSIGNED_PAYLOAD

        headers_to_sign = {
            "host": host,
            "x-amz-content-sha256": payload_hash,
            "x-amz-date": amz_date,
        }
        if extra_headers:
            for k, v in extra_headers.items():
                if k.lower().startswith("x-amz-"):
                    headers_to_sign[k.lower()] = v
        canonical_headers, signed_headers = get_canonical_headers(headers_to_sign)

        canonical_request_parts = [
            method,
            canonical_uri,
            canonical_querystring,
            canonical_headers,
            signed_headers,
            payload_hash,
        ]
        canonical_request = "\n".join(canonical_request_parts)
        hashed_canonical_request = get_hash(canonical_request)

        algorithm = "AWS4-HMAC-SHA256"
        credential_scope = (
            f"{datestamp}/{self.region}/{self.service.value}/aws4_request"
        )

        string_to_sign = (
            f"{algorithm}\n{amz_date}\n{credential_scope}\n{hashed_canonical_request}"
        )
        signature_key = get_signature_key(
            key=self.secret_key,
            datestamp=datestamp,
            region=self.region,
            service=self.service,
        )
        signature = get_signature(
            signature_key=signature_key, string_to_sign=string_to_sign
        )

        authorization_header_parts = [
            algorithm,
            f"Credential={self.access_key}/{credential_scope},",
            f"SignedHeaders={signed_headers},",
            f"Signature={signature}",
        ]
        authorization_header = " ".join(authorization_header_parts)

        headers = {
            "x-amz-date": amz_date,
            "Authorization": authorization_header,
            "x-amz-content-sha256": payload_hash,
        }
        if extra_headers:
            headers.update(extra_headers)

        url = f"{self.scheme}://{host}{canonical_uri}"
        if canonical_querystring:
            url = f"{url}?{canonical_querystring}"

        request = self._httpx.build_request(
            method=method, url=url, headers=headers, content=data
        )
        res = await self._httpx.send(request, stream=stream)

        if res.is_error:
            if stream:
                await res.aread()
                await res.aclose()
            self._raise_for_status(res, action)

        return res

    def _raise_for_status(self, res: Response, action: str):
        aws_code = None
        aws_message = None
        if res.content:
            soup = BeautifulSoup(res.content, "xml")
            code_el = soup.find("Code")
            message_el = soup.find("Message")
            aws_code = code_el.text if code_el else None
            aws_message = message_el.text if message_el else None

        logger.error(
            "HttpRequest error",
            action=action,
            status_code=res.status_code,
            reason=res.reason_phrase,
            aws_code=aws_code,
            aws_message=aws_message,
        )
        raise HttpError(
            res.status_code,
            res.reason_phrase,
            context=action,
            code=aws_code,
            message=aws_message,
        )
