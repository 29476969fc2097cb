"""Decoding of bucket listing responses.

The server answers a list call with a ``ListBucketResult`` XML document. The
document is flattened into plain dictionaries and validated with pydantic;
elements this module does not know about are ignored.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from xml.etree import ElementTree

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from bucketkit.infra.storage.client import ResponseDecodeError

_ROOT_TAG = "ListBucketResult"
_VERBATIM_TAGS = {"Key", "Prefix", "Marker", "NextMarker", "Delimiter"}


class _XmlModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class Owner(_XmlModel):
    id: str = Field(default="", alias="ID")
    display_name: str = Field(default="", alias="DisplayName")


class ListEntry(_XmlModel):
    """A single object in a listing page."""

    key: str = Field(alias="Key")
    last_modified: datetime | None = Field(default=None, alias="LastModified")
    etag: str = Field(default="", alias="ETag")
    size: int = Field(default=0, alias="Size")
    storage_class: str = Field(default="", alias="StorageClass")
    owner: Owner | None = Field(default=None, alias="Owner")


class ListBucketResult(_XmlModel):
    """One page of a bucket listing."""

    name: str = Field(default="", alias="Name")
    prefix: str = Field(default="", alias="Prefix")
    marker: str = Field(default="", alias="Marker")
    next_marker: str = Field(default="", alias="NextMarker")
    delimiter: str = Field(default="", alias="Delimiter")
    max_keys: int = Field(default=0, alias="MaxKeys")
    is_truncated: bool = Field(default=False, alias="IsTruncated")
    contents: list[ListEntry] = Field(default_factory=list, alias="Contents")
    common_prefixes: list[str] = Field(default_factory=list, alias="CommonPrefixes")

    @property
    def keys(self) -> list[str]:
        return [entry.key for entry in self.contents]

    def next_page_marker(self) -> str | None:
        """Marker to pass to the next list call, or None on the last page.

        Servers only send ``NextMarker`` when a delimiter was requested, so
        the last key of the page is used otherwise.
        """
        if not self.is_truncated:
            return None
        if self.next_marker:
            return self.next_marker
        if self.contents:
            return self.contents[-1].key
        return None


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _leaf_value(name: str, element: ElementTree.Element) -> str | None:
    """Text of a leaf element; None when it should fall back to a default.

    Keys, prefixes and markers are kept byte for byte, since object keys may
    begin or end with whitespace. Other values are trimmed for pydantic.
    """
    text = element.text or ""
    if name in _VERBATIM_TAGS:
        return text
    text = text.strip()
    return text or None


def _element_to_dict(element: ElementTree.Element) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for child in element:
        name = _local_name(child.tag)
        if len(child):
            result[name] = _element_to_dict(child)
            continue
        value = _leaf_value(name, child)
        if value is not None:
            result[name] = value
    return result


def _flatten_listing(root: ElementTree.Element) -> dict[str, Any]:
    payload: dict[str, Any] = {"Contents": [], "CommonPrefixes": []}
    for child in root:
        name = _local_name(child.tag)
        if name == "Contents":
            payload["Contents"].append(_element_to_dict(child))
        elif name == "CommonPrefixes":
            prefix = _element_to_dict(child).get("Prefix")
            if prefix is not None:
                payload["CommonPrefixes"].append(prefix)
        elif len(child) == 0:
            value = _leaf_value(name, child)
            if value is not None:
                payload[name] = value
    return payload


def decode_list_result(body: bytes) -> ListBucketResult:
    """Decode a ``ListBucketResult`` XML document.

    Raises:
        ResponseDecodeError: If the body is not a well-formed listing.
    """
    try:
        root = ElementTree.fromstring(body)
    except ElementTree.ParseError as exc:
        raise ResponseDecodeError(f"Failed to parse list response: {exc}") from exc

    if _local_name(root.tag) != _ROOT_TAG:
        raise ResponseDecodeError(
            f"Unexpected list response root element: {_local_name(root.tag)}"
        )

    try:
        return ListBucketResult.model_validate(_flatten_listing(root))
    except PydanticValidationError as exc:
        raise ResponseDecodeError(f"Invalid list response: {exc}") from exc
