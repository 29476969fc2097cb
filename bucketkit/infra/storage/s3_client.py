"""S3-compatible storage client implementation.

This module provides an object storage client speaking the S3 REST API
directly over HTTP, authenticating every request with the "AWS" (version 2)
HMAC-SHA1 signature scheme.

Dependencies:
    - requests
"""

from __future__ import annotations

import logging
import mimetypes
import time
from contextlib import closing
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, BinaryIO, Callable
from urllib.parse import quote, urlencode

import requests

from bucketkit.common.config import DEFAULT_ENDPOINT_URL
from bucketkit.common.logging import mask_headers
from bucketkit.infra.observability.metrics import observe_request
from bucketkit.infra.storage.client import (
    Auth,
    DeleteRequest,
    GetRequest,
    HTTPStatusError,
    ListRequest,
    PutObjectRequest,
    PutRequest,
    StorageError,
    TransportError,
    ValidationError,
)
from bucketkit.infra.storage.listing import ListBucketResult, decode_list_result
from bucketkit.infra.storage.signing import (
    authorization_header,
    format_date,
    resource_path,
    sign_delete,
    sign_get,
    sign_list,
    sign_put,
)

if TYPE_CHECKING:
    from bucketkit.common.config import Settings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeclaredLengthBody:
    """Upload body reporting the length declared by its reader factory.

    Only ``read`` and ``__len__`` are exposed, so requests sizes the body
    from the declared length instead of inspecting the stream or falling back
    to chunked transfer encoding. Reads stop at the declared length.
    """

    def __init__(self, reader: BinaryIO, length: int) -> None:
        self._reader = reader
        self._remaining = length
        self._length = length

    def __len__(self) -> int:
        return self._length

    def read(self, size: int = -1) -> bytes:
        if self._remaining <= 0:
            return b""
        if size is None or size < 0 or size > self._remaining:
            size = self._remaining
        chunk = self._reader.read(size)
        self._remaining -= len(chunk)
        return chunk


def guess_content_type(key: str) -> str:
    """Content type inferred from the key's file extension, or ``""``."""
    content_type, _ = mimetypes.guess_type(key, strict=False)
    return content_type or ""


class S3StorageClient:
    """S3-compatible object storage client.

    Holds an explicit ``requests.Session`` used for every call; nothing is
    shared through module globals. Each operation performs a single signed
    HTTP exchange and never retries.
    """

    def __init__(
        self,
        *,
        auth: Auth,
        endpoint: str = DEFAULT_ENDPOINT_URL,
        session: requests.Session | None = None,
        metrics_enabled: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the client.

        Args:
            auth: Access key and secret used to sign every request.
            endpoint: Scheme and host of the storage service.
            session: HTTP session to issue requests with. A new one is
                created when omitted.
            metrics_enabled: Record prometheus metrics for each request.
            clock: Source of the request timestamp.
        """
        self._auth = auth
        self._endpoint = endpoint.rstrip("/")
        self._session = session if session is not None else requests.Session()
        self._metrics_enabled = metrics_enabled
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: "Settings", *, session: requests.Session | None = None
    ) -> "S3StorageClient":
        """Create a client from application settings.

        Raises:
            ValidationError: If the settings carry no credentials.
        """
        if not settings.has_credentials:
            raise ValidationError(
                "S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY must be configured"
            )
        return cls(
            auth=Auth(
                access_key=str(settings.S3_ACCESS_KEY_ID),
                secret_key=str(settings.S3_SECRET_ACCESS_KEY),
            ),
            endpoint=settings.S3_ENDPOINT_URL,
            session=session,
            metrics_enabled=settings.ENABLE_METRICS,
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "S3StorageClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _signed_headers(self, now: datetime, signature: str) -> dict[str, str]:
        return {
            "Date": format_date(now),
            "Authorization": authorization_header(self._auth, signature),
        }

    def _send(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        headers: dict[str, str],
        query: str = "",
        data: Any = None,
        stream: bool = False,
    ) -> requests.Response:
        url = self._endpoint + path
        if query:
            url = f"{url}?{query}"

        start = time.perf_counter()
        try:
            prepared = self._session.prepare_request(
                requests.Request(method, url, headers=headers, data=data)
            )
            # requests decodes escapes such as %2E; send the signed path as is
            prepared.url = url
            settings = self._session.merge_environment_settings(
                prepared.url, {}, stream, None, None
            )
            response = self._session.send(prepared, **settings)
        except requests.RequestException as exc:
            elapsed = time.perf_counter() - start
            observe_request(
                operation, "error", elapsed, enabled=self._metrics_enabled
            )
            logger.warning(
                "storage_request_error operation=%s method=%s path=%s error=%s",
                operation,
                method,
                path,
                exc,
                extra={
                    "extra": {
                        "operation": operation,
                        "method": method,
                        "path": path,
                        "headers": mask_headers(headers),
                    }
                },
            )
            raise TransportError(f"Failed to {operation}: {exc}") from exc

        elapsed = time.perf_counter() - start
        observe_request(
            operation, response.status_code, elapsed, enabled=self._metrics_enabled
        )
        logger.debug(
            "storage_request operation=%s method=%s path=%s status=%s duration_ms=%.3f",
            operation,
            method,
            path,
            response.status_code,
            round(elapsed * 1000, 3),
            extra={
                "extra": {
                    "operation": operation,
                    "method": method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(elapsed * 1000, 3),
                    "headers": mask_headers(headers),
                }
            },
        )
        return response

    @staticmethod
    def _raise_for_status(
        response: requests.Response, *, allow_2xx: bool = False
    ) -> None:
        status = response.status_code
        ok = 200 <= status < 300 if allow_2xx else status == 200
        if not ok:
            raise HTTPStatusError(status, response.reason)

    def list_objects(self, request: ListRequest) -> ListBucketResult:
        """List one page of objects in a bucket."""
        if not request.bucket:
            raise ValidationError("no bucket name")

        params = {"max-keys": str(request.effective_max_keys)}
        if request.marker:
            params["marker"] = request.marker
        if request.prefix:
            params["prefix"] = request.prefix
        query = urlencode(sorted(params.items()), quote_via=quote)

        path = resource_path(request.bucket)
        now = self._clock()
        headers = self._signed_headers(now, sign_list(path, self._auth, now))

        with closing(
            self._send("list_objects", "GET", path, headers=headers, query=query)
        ) as response:
            self._raise_for_status(response)
            return decode_list_result(response.content)

    def _open(self, request: GetRequest) -> requests.Response:
        ref = request.object
        path = resource_path(ref.bucket, ref.key)
        now = self._clock()
        headers = self._signed_headers(now, sign_get(path, self._auth, now))

        response = self._send("get_object", "GET", path, headers=headers, stream=True)
        if response.status_code != 200:
            response.close()
            raise HTTPStatusError(response.status_code, response.reason)
        return response

    def open_object(self, request: GetRequest) -> BinaryIO:
        """Open an object for streaming; the caller must close the result."""
        response = self._open(request)
        response.raw.decode_content = True
        return response.raw

    def get_object(self, request: GetRequest) -> bytes:
        """Fetch an object fully into memory."""
        with closing(self._open(request)) as response:
            try:
                return response.content
            except requests.RequestException as exc:
                raise TransportError(f"Failed to read object body: {exc}") from exc

    def delete_object(self, request: DeleteRequest) -> None:
        """Delete an object. Any 2xx status counts as success."""
        ref = request.object
        path = resource_path(ref.bucket, ref.key)
        now = self._clock()
        headers = self._signed_headers(now, sign_delete(path, self._auth, now))

        with closing(
            self._send("delete_object", "DELETE", path, headers=headers)
        ) as response:
            self._raise_for_status(response, allow_2xx=True)

    def _put_headers(
        self, path: str, content_type: str, length: int
    ) -> dict[str, str]:
        now = self._clock()
        headers = self._signed_headers(
            now, sign_put(path, content_type, self._auth, now)
        )
        headers["Content-Type"] = content_type
        headers["Content-Length"] = str(length)
        return headers

    def put(self, request: PutRequest) -> None:
        """Upload an object from a stream produced by the request's factory."""
        ref = request.object
        path = resource_path(ref.bucket, ref.key)
        content_type = request.content_type or guess_content_type(ref.key)
        factory = request.reader_factory

        try:
            length = int(factory.length())
            reader = factory.create_reader()
        except OSError as exc:
            raise StorageError(f"Failed to open upload stream: {exc}") from exc

        try:
            headers = self._put_headers(path, content_type, length)
            # empty uploads go out as bytes so Content-Length stays 0
            body = DeclaredLengthBody(reader, length) if length else b""
            with closing(
                self._send("put", "PUT", path, headers=headers, data=body)
            ) as response:
                self._raise_for_status(response)
        finally:
            reader.close()

    def put_object(self, request: PutObjectRequest) -> None:
        """Upload an in-memory byte string."""
        ref = request.object
        path = resource_path(ref.bucket, ref.key)
        content_type = request.content_type or guess_content_type(ref.key)
        data = bytes(request.data)

        headers = self._put_headers(path, content_type, len(data))
        with closing(
            self._send("put_object", "PUT", path, headers=headers, data=data)
        ) as response:
            self._raise_for_status(response)
