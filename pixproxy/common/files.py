from __future__ import annotations

_CONTENT_TYPES = {
    "bmp": "image/bmp",
    "gif": "image/gif",
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "ico": "image/x-icon",
}

OCTET_STREAM = "application/octet-stream"


def get_file_extension(filename: str, default: str = "") -> str:
    """Lower-cased extension of the last path segment, or ``default``.

    A leading dot alone (``.hiddenfile``) is not an extension.
    """
    name = filename.rsplit("/", 1)[-1]
    last_dot = name.rfind(".")
    if last_dot <= 0:
        return default
    return name[last_dot + 1:].lower()


def strip_extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    last_dot = name.rfind(".")
    if last_dot <= 0:
        return path
    return path[: len(path) - len(name) + last_dot]


def content_type_for_extension(extension: str) -> str:
    return _CONTENT_TYPES.get(extension.lower(), OCTET_STREAM)
