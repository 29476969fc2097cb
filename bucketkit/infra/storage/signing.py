"""Request signing for the S3 "AWS" (version 2) authorization scheme.

The string to sign is the newline-joined sequence::

    VERB
    <content-md5, always empty>
    CONTENT-TYPE
    DATE
    /bucket/key

signed with HMAC-SHA1 and base64 encoded. The field order is fixed by the
server; any deviation yields signatures it rejects.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from email.utils import format_datetime
from urllib.parse import quote

from bucketkit.infra.storage.client import Auth, SigningError

NEWLINE = "\n"


def format_date(timestamp: datetime) -> str:
    """Format ``timestamp`` as RFC 1123 with a numeric zone, in UTC."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return format_datetime(timestamp.astimezone(timezone.utc))


def _escape_part(part: str) -> str:
    # "." and ".." would be collapsed by URL normalization before sending
    if part in {".", ".."}:
        return part.replace(".", "%2E")
    return quote(part, safe="")


def escape(segment: str) -> str:
    """Percent-escape a bucket name or key for use in a request path.

    ``/`` stays a separator; dot segments are escaped so the path reaches
    the server exactly as signed.
    """
    return "/".join(_escape_part(part) for part in segment.split("/"))


def resource_path(bucket: str, key: str = "") -> str:
    """Escaped ``/bucket/key`` path; ``/bucket/`` when ``key`` is empty."""
    return "/" + _escape_part(bucket) + "/" + escape(key)


def canonical_string(
    verb: str, content_type: str, timestamp: datetime, path: str
) -> str:
    return (
        verb
        + NEWLINE
        + NEWLINE
        + (content_type or "")
        + NEWLINE
        + format_date(timestamp)
        + NEWLINE
        + path
    )


def sign(secret: bytes | str, canonical: str) -> str:
    """HMAC-SHA1 of ``canonical`` keyed by ``secret``, base64 encoded."""
    try:
        key = secret if isinstance(secret, bytes) else secret.encode("utf-8")
        digest = hmac.new(key, canonical.encode("utf-8"), hashlib.sha1).digest()
        return base64.b64encode(digest).decode("ascii")
    except (UnicodeError, TypeError) as exc:
        raise SigningError(f"Failed to sign request: {exc}") from exc


def authorization_header(auth: Auth, signature: str) -> str:
    return f"AWS {auth.access_key}:{signature}"


def sign_get(path: str, auth: Auth, timestamp: datetime) -> str:
    return sign(auth.secret_bytes, canonical_string("GET", "", timestamp, path))


def sign_list(path: str, auth: Auth, timestamp: datetime) -> str:
    # The list query string is sent but never signed.
    return sign(auth.secret_bytes, canonical_string("GET", "", timestamp, path))


def sign_delete(path: str, auth: Auth, timestamp: datetime) -> str:
    return sign(auth.secret_bytes, canonical_string("DELETE", "", timestamp, path))


def sign_put(
    path: str, content_type: str, auth: Auth, timestamp: datetime
) -> str:
    return sign(
        auth.secret_bytes, canonical_string("PUT", content_type, timestamp, path)
    )
