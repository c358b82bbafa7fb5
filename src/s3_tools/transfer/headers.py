"""Parsing of ``Name:Value`` header and metadata options for uploads."""

from typing import Iterable, Optional

from s3_tools.core.exceptions import ValidationError

# Request parameters accepted by both PutObject and CreateMultipartUpload
UPLOAD_HEADER_PARAMS = frozenset(
    {
        "CacheControl",
        "ContentDisposition",
        "ContentEncoding",
        "ContentLanguage",
        "ContentType",
        "Expires",
        "ServerSideEncryption",
        "SSEKMSKeyId",
        "StorageClass",
        "Tagging",
        "WebsiteRedirectLocation",
    }
)

_PARAM_ALIASES = {name.lower(): name for name in UPLOAD_HEADER_PARAMS}


def split_pair(text: Optional[str]) -> Optional[tuple[str, str]]:
    """Split ``"name:value"`` at the first colon.

    Both sides are stripped; a pair with an empty name or value yields None.
    """
    if not text:
        return None

    pivot = text.find(":")
    if pivot < 1:
        return None

    name = text[:pivot].strip()
    value = text[pivot + 1 :].strip()
    if not name or not value:
        return None

    return name, value


def header_param_name(name: str) -> str:
    """Map a header name to its S3 request parameter.

    ``Content-Type``, ``content-type`` and ``ContentType`` all map to
    ``ContentType``.

    Raises:
        ValidationError: If the header is not a supported upload parameter
    """
    normalized = name.replace("-", "").replace("_", "").lower()
    param = _PARAM_ALIASES.get(normalized)
    if param is None:
        raise ValidationError(f'Unsupported upload header: "{name}"')
    return param


def parse_header_pairs(headers: Optional[Iterable[str]]) -> dict[str, str]:
    """Turn ``Name:Value`` options into S3 request parameters.

    Raises:
        ValidationError: If a pair is malformed or names an unsupported header
    """
    params: dict[str, str] = {}
    for header in headers or []:
        pair = split_pair(header)
        if pair is None:
            raise ValidationError(f'Invalid header (expected "Name:Value"): "{header}"')
        name, value = pair
        params[header_param_name(name)] = value
    return params


def parse_metadata_pairs(metadata: Optional[Iterable[str]]) -> dict[str, str]:
    """Turn ``name:value`` options into user metadata; malformed pairs are skipped."""
    record: dict[str, str] = {}
    for item in metadata or []:
        pair = split_pair(item)
        if pair is not None:
            record[pair[0]] = pair[1]
    return record
