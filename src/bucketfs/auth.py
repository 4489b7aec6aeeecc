import hashlib
import hmac
from urllib.parse import quote

from .enums import Service

UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"


def get_signature_key(*, key: str, datestamp: str, region: str, service: Service):
    def sign(key, msg):
        return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()

    signature_key = sign(("AWS4" + key).encode("utf-8"), datestamp)
    signature_key = sign(signature_key, region)
    signature_key = sign(signature_key, service.value)
    signature_key = sign(signature_key, "aws4_request")

    return signature_key


def get_signature(*, signature_key: bytes, string_to_sign: str):
    return hmac.new(
        signature_key, (string_to_sign).encode("utf-8"), hashlib.sha256
    ).hexdigest()


def get_hash(value: str | bytes):
    encoded_value = value.encode("utf-8") if isinstance(value, str) else value
    hashed_value = hashlib.sha256(encoded_value).hexdigest()

    return hashed_value


def uri_encode(value: str, *, keep_slash: bool = False) -> str:
    """
    Percent-encode everything except the RFC 3986 unreserved characters.

    Object keys keep their "/" separators in the canonical URI; query string
    keys and values encode them.
    """
    safe = "-_.~/" if keep_slash else "-_.~"
    return quote(value, safe=safe)


def get_canonical_querystring(params: dict | None) -> str:
    if not params:
        return ""
    parts = []
    for k, v in params.items():
        if v is None:
            continue
        parts.append(f"{uri_encode(str(k))}={uri_encode(str(v))}")
    return "&".join(sorted(parts))


def get_canonical_headers(headers: dict[str, str]) -> tuple[str, str]:
    """
    Returns the canonical header block and the matching SignedHeaders value.
    """
    normalized = {k.lower(): " ".join(str(v).split()) for k, v in headers.items()}
    names = sorted(normalized)
    canonical_headers = "".join(f"{name}:{normalized[name]}\n" for name in names)
    signed_headers = ";".join(names)

    return canonical_headers, signed_headers
