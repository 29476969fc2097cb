"""Minimal client for S3-style object storage with request signing."""

from bucketkit.infra.storage import (
    Auth,
    BytesReaderFactory,
    DeleteRequest,
    FileReaderFactory,
    GetRequest,
    HTTPStatusError,
    ListBucketResult,
    ListRequest,
    ObjectRef,
    PutObjectRequest,
    PutRequest,
    S3StorageClient,
    StorageError,
    TransportError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "Auth",
    "BytesReaderFactory",
    "DeleteRequest",
    "FileReaderFactory",
    "GetRequest",
    "HTTPStatusError",
    "ListBucketResult",
    "ListRequest",
    "ObjectRef",
    "PutObjectRequest",
    "PutRequest",
    "S3StorageClient",
    "StorageError",
    "TransportError",
    "ValidationError",
]
