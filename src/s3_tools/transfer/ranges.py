"""Byte-range validation for partial object fetches."""

import re
from typing import Optional

from s3_tools.core.exceptions import ValidationError

_RANGE_PATTERN = re.compile(r"^(\d+)(?:-(\d+))?$")


def validate_range(byte_range: Optional[str]) -> Optional[str]:
    """Validate and normalize an inclusive byte range.

    ``"start-end"`` is accepted when ``start <= end``; a bare ``"start"``
    becomes ``"start-start"``.

    Examples:
        >>> validate_range("0-499")
        '0-499'
        >>> validate_range("500")
        '500-500'

    Raises:
        ValidationError: If the range is malformed or inverted
    """
    if byte_range is None:
        return None

    match = _RANGE_PATTERN.match(byte_range.strip())
    if not match:
        raise ValidationError(f'Invalid range: "{byte_range}"')

    start = int(match.group(1))
    if match.group(2) is None:
        return f"{start}-{start}"

    end = int(match.group(2))
    if start > end:
        raise ValidationError(f'Invalid range: "{byte_range}" (start is after end)')

    return f"{start}-{end}"


def range_header(byte_range: Optional[str]) -> Optional[str]:
    """Turn a validated range into an HTTP ``Range`` header value."""
    normalized = validate_range(byte_range)
    return f"bytes={normalized}" if normalized else None
