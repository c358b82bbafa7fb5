"""Resolve bucket/key pairs from URIs and positional arguments.

Commands accept either a URI (``s3://bucket/prefix/key``), a path-like
string (``bucket/prefix/key``, ``/bucket/key``) or a bare bucket followed
by an explicit key. Every form resolves to the same ``ResourceLocation``.
Redundant separators are trimmed: leading separators are dropped and a
trailing run of separators on a key collapses to one, so ``bkt/k/p//``
names the prefix ``k/p/``.
"""

import re
from dataclasses import dataclass
from typing import Optional

from s3_tools.core import get_logger
from s3_tools.core.exceptions import ValidationError

logger = get_logger(__name__)

SEPARATOR = "/"

_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")


@dataclass(frozen=True)
class ResourceLocation:
    """A bucket and an optional key (or key prefix) within it."""

    bucket: Optional[str] = None
    key: Optional[str] = None

    @property
    def uri(self) -> str:
        return format_uri(self.bucket or "", self.key or "")

    def as_dict(self) -> dict[str, str]:
        """Return the location with absent parts omitted."""
        result = {}
        if self.bucket:
            result["bucket"] = self.bucket
        if self.key:
            result["key"] = self.key
        return result


def trim(
    text: Optional[str],
    delimiter: str = " ",
    left: bool = True,
    right: bool = True,
    keep: int = 0,
) -> str:
    """Strip runs of ``delimiter`` from either end, keeping up to ``keep``.

    Examples:
        >>> trim("//path//", "/")
        'path'
        >>> trim("::foo::", ":", keep=1)
        ':foo:'
    """
    text = text or ""
    first = 0
    last = len(text)

    if left:
        while first < len(text) and text[first] == delimiter:
            first += 1
        first = max(first - keep, 0)

    if right:
        while last > 0 and text[last - 1] == delimiter:
            last -= 1
        last = min(last + keep, len(text))

    if first >= last:
        return ""

    return text[first:last]


def trim_left(text: Optional[str], delimiter: str = " ", keep: int = 0) -> str:
    return trim(text, delimiter, left=True, right=False, keep=keep)


def trim_right(text: Optional[str], delimiter: str = " ", keep: int = 0) -> str:
    return trim(text, delimiter, left=False, right=True, keep=keep)


def _normalize_key(key: Optional[str]) -> Optional[str]:
    key = trim_right(trim_left(key, SEPARATOR), SEPARATOR, keep=1)
    return key or None


def parse_uri(uri: str) -> ResourceLocation:
    """Parse a URI or path-like string into a bucket and an optional key.

    Args:
        uri: ``scheme://bucket/key``, ``bucket/key``, ``/bucket/key`` or ``bucket``

    Returns:
        ResourceLocation with empty parts set to None
    """
    uri = uri or ""
    key: Optional[str] = None

    scheme = _SCHEME_PATTERN.match(uri)
    if scheme:
        remainder = uri[scheme.end():]
        pivot = remainder.find(SEPARATOR)
        host = remainder if pivot < 0 else remainder[:pivot]
        path = "" if pivot < 0 else remainder[pivot:]

        if host:
            bucket = host
            if path and path != SEPARATOR:
                key = trim_left(path, SEPARATOR)
        else:
            bucket = trim_left(path, SEPARATOR)
    else:
        bucket = trim_left(uri, SEPARATOR)

    if not key:
        pivot = bucket.find(SEPARATOR)
        if pivot > 0:
            key = trim_left(bucket[pivot:], SEPARATOR)
            bucket = bucket[:pivot]

    return ResourceLocation(
        bucket=trim(bucket, SEPARATOR) or None,
        key=_normalize_key(key),
    )


def resolve_resource(uri_or_bucket: str, key: Optional[str] = None) -> ResourceLocation:
    """Resolve a command's positional arguments to a bucket and key.

    When an explicit key is supplied it wins, and only the bucket is taken
    from the first argument.

    Args:
        uri_or_bucket: A bucket name, a path-like string or a URI
        key: Explicit key (or prefix) within the bucket

    Returns:
        ResourceLocation with the bucket always set

    Raises:
        ValidationError: If no bucket can be resolved
    """
    parsed = parse_uri(uri_or_bucket)

    if not parsed.bucket:
        raise ValidationError(f"Could not resolve a bucket from '{uri_or_bucket}'")

    if key:
        location = ResourceLocation(bucket=parsed.bucket, key=_normalize_key(key))
    else:
        location = parsed

    logger.debug("Resource resolved", bucket=location.bucket, key=location.key)
    return location


def format_uri(bucket: str, key: Optional[str] = "") -> str:
    """Build ``s3://bucket/key`` from its parts, trimming stray separators."""
    bucket = trim(bucket, SEPARATOR)
    key = trim_right(trim_left(key, SEPARATOR), SEPARATOR, keep=1)
    return f"s3://{bucket}/{key}"
