"""Small formatting and naming helpers shared across the package."""
import mimetypes
import secrets
import string

_ID_ALPHABET = string.ascii_letters + string.digits

_EXTENSION_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
}

_CATEGORIES = ("image", "video", "audio", "text", "application")


def human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def generate_id(length: int = 8) -> str:
    """Random alphanumeric id. Uniqueness is enforced by the caller."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def guess_content_type(name: str) -> str:
    """Best effort MIME type from a file name; empty string when unknown."""
    extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    if extension in _EXTENSION_TYPES:
        return _EXTENSION_TYPES[extension]
    guessed, _ = mimetypes.guess_type(name)
    return guessed or ""


def file_category(content_type: str) -> str:
    """Map a MIME type to its top-level category (image, video, ...)."""
    major = (content_type or "").split("/", 1)[0].lower()
    return major if major in _CATEGORIES else ""
