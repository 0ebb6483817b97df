"""Display code formatting: <prefix>-<zero padded sequence>."""

import re

from swiftqueue.core.modules.token.models import ServiceCategory

CODE_RE = re.compile(r"^([A-Z])-(\d{3,})$")
SEQUENCE_WIDTH = 3


def format_display_code(category: ServiceCategory, number: int) -> str:
    if number < 1:
        raise ValueError(f"Sequence number must be positive, got {number}")
    return f"{category.prefix}-{number:0{SEQUENCE_WIDTH}d}"


def parse_display_code(code: str) -> tuple[str, int] | None:
    """Split a display code into (prefix, number), or None if malformed."""
    match = CODE_RE.fullmatch(code)
    if match is None:
        return None
    return match.group(1), int(match.group(2))
