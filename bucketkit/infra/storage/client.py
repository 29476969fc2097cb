"""Storage client protocol and data types.

This module defines the request objects, credentials and error hierarchy
shared by the object storage client, plus the protocol every backend
implements.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Protocol

if TYPE_CHECKING:
    from bucketkit.infra.storage.listing import ListBucketResult


DEFAULT_MAX_KEYS = 1000


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class ValidationError(StorageError):
    """Raised when a request is rejected before any network activity."""


class TransportError(StorageError):
    """Raised when the HTTP exchange itself fails (connection, DNS, TLS)."""


class HTTPStatusError(StorageError):
    """Raised when the server answers with a non-success status code.

    The message is the status line, e.g. ``404 Not Found``.
    """

    def __init__(self, status_code: int, reason: str | None = None) -> None:
        self.status_code = int(status_code)
        self.reason = reason or ""
        super().__init__(f"{self.status_code} {self.reason}".strip())


class SigningError(StorageError):
    """Raised when a request signature cannot be computed."""


class ResponseDecodeError(StorageError):
    """Raised when a response body cannot be decoded."""


@dataclass(frozen=True, slots=True)
class Auth:
    """Access key identifier plus the secret used to sign requests."""

    access_key: str
    secret_key: bytes | str = field(repr=False)

    @property
    def secret_bytes(self) -> bytes:
        if isinstance(self.secret_key, bytes):
            return self.secret_key
        return self.secret_key.encode("utf-8")


@dataclass(frozen=True, slots=True)
class ObjectRef:
    """Bucket name and key identifying a stored object."""

    bucket: str
    key: str


@dataclass(frozen=True, slots=True)
class ListRequest:
    """Parameters of a single bucket listing call.

    ``max_keys`` of zero or less means the server default of 1000.
    """

    bucket: str
    max_keys: int = 0
    marker: str = ""
    prefix: str = ""

    @property
    def effective_max_keys(self) -> int:
        return self.max_keys if self.max_keys > 0 else DEFAULT_MAX_KEYS


@dataclass(frozen=True, slots=True)
class GetRequest:
    object: ObjectRef


@dataclass(frozen=True, slots=True)
class DeleteRequest:
    object: ObjectRef


class ReaderFactory(Protocol):
    """Produces fresh readable streams of a known, fixed length."""

    def create_reader(self) -> BinaryIO:
        """Open a new stream positioned at the start of the content."""
        ...

    def length(self) -> int:
        """Exact number of bytes every stream created here yields."""
        ...


@dataclass(frozen=True, slots=True)
class BytesReaderFactory:
    """Reader factory over an in-memory byte string."""

    data: bytes

    def create_reader(self) -> BinaryIO:
        return io.BytesIO(self.data)

    def length(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class FileReaderFactory:
    """Reader factory over a file on the local filesystem."""

    path: Path

    def create_reader(self) -> BinaryIO:
        return open(self.path, "rb")

    def length(self) -> int:
        return Path(self.path).stat().st_size


@dataclass(frozen=True, slots=True)
class PutRequest:
    """Streaming upload; the stream comes from ``reader_factory``."""

    object: ObjectRef
    reader_factory: ReaderFactory
    content_type: str = ""


@dataclass(frozen=True, slots=True)
class PutObjectRequest:
    """Upload of an in-memory byte string."""

    object: ObjectRef
    data: bytes
    content_type: str = ""


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations must provide all methods defined here.
    Every method performs exactly one HTTP exchange and never retries.
    """

    def list_objects(self, request: ListRequest) -> "ListBucketResult":
        """List the objects of a bucket.

        Args:
            request: Bucket name plus optional max-keys, marker and prefix.

        Returns:
            The decoded listing for this single page.

        Raises:
            ValidationError: If the bucket name is empty.
            StorageError: If the request or decoding fails.
        """
        ...

    def open_object(self, request: GetRequest) -> BinaryIO:
        """Open an object for reading.

        Args:
            request: The object to fetch.

        Returns:
            The open response body. The caller must close it.

        Raises:
            StorageError: If the object cannot be fetched.
        """
        ...

    def get_object(self, request: GetRequest) -> bytes:
        """Fetch an object fully into memory.

        Raises:
            StorageError: If the object cannot be fetched.
        """
        ...

    def delete_object(self, request: DeleteRequest) -> None:
        """Delete an object. Any 2xx status counts as success.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def put(self, request: PutRequest) -> None:
        """Upload an object from a stream produced by a reader factory.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def put_object(self, request: PutObjectRequest) -> None:
        """Upload an object from an in-memory byte string.

        Raises:
            StorageError: If the operation fails.
        """
        ...
