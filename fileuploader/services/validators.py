"""
Admission validators.

Each validator is a pure function ``(candidate, config) -> Optional[str]``:
None accepts the candidate, a string is the human-readable rejection reason.
"""
import logging
import re
from typing import Any, Optional

from ..models import UploaderConfig
from ..utils.formatting import guess_content_type, human_size

logger = logging.getLogger(__name__)


def _matches_pattern(pattern: str, content_type: str) -> bool:
    try:
        return re.search(pattern, content_type) is not None
    except re.error as e:
        logger.warning("Ignoring invalid allowed file type pattern %r: %s", pattern, e)
        return False


def validate_file_type(candidate: Any, config: UploaderConfig) -> Optional[str]:
    """Check the candidate's MIME type against the allow-list (exact or regex)."""
    allowed = config.allowed_file_types
    if not allowed:
        return None

    content_type = getattr(candidate, "content_type", "") or guess_content_type(
        getattr(candidate, "name", "")
    )
    if content_type in allowed:
        return None
    if content_type and any(_matches_pattern(pattern, content_type) for pattern in allowed):
        return None

    return "File type is not supported"


def validate_file_size(candidate: Any, config: UploaderConfig) -> Optional[str]:
    """Check the candidate's byte size against the configured bounds."""
    size = getattr(candidate, "size", 0)
    min_size = config.min_allowed_file_size
    max_size = config.max_allowed_file_size

    if min_size != -1 and size < min_size:
        return (
            f"File's size ({human_size(size)}) is smaller than "
            f"the allowed file size ({human_size(min_size)})"
        )

    if max_size != -1 and size > max_size:
        return (
            f"File's size ({human_size(size)}) is greater than "
            f"the allowed file size ({human_size(max_size)})"
        )

    return None


DEFAULT_VALIDATORS = (validate_file_type, validate_file_size)
