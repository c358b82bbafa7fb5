"""Key-name filtering shared by the commands that walk a prefix."""

import re
from typing import Optional, Pattern

from s3_tools.core.exceptions import ValidationError


def compile_key_filter(pattern: Optional[str]) -> Optional[Pattern[str]]:
    """Compile a key regex, failing before any request is made.

    Raises:
        ValidationError: If the pattern is not a valid regular expression
    """
    if not pattern:
        return None

    try:
        return re.compile(pattern)
    except re.error as e:
        raise ValidationError(f"Invalid key regex /{pattern}/: {e}") from e


def key_matches(key_filter: Optional[Pattern[str]], key: str) -> bool:
    """True when there is no filter or the filter matches anywhere in the key."""
    return key_filter is None or key_filter.search(key) is not None
