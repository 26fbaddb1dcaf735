from tubely.errors import UnsupportedMediaType

MEDIA_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "video/mp4": ".mp4",
}

THUMBNAIL_MEDIA_TYPES = frozenset({"image/jpeg", "image/png", "image/gif"})
VIDEO_MEDIA_TYPES = frozenset({"video/mp4"})


def parse_media_type(content_type: str | None) -> str:
    """'image/PNG; charset=binary' -> 'image/png'."""
    return (content_type or "").split(";")[0].strip().lower()


def media_type_to_ext(content_type: str | None, allowed: frozenset[str] | None = None) -> tuple[str, str]:
    """Return (media_type, extension) for an allowed content type, else raise UnsupportedMediaType."""
    media_type = parse_media_type(content_type)
    ext = MEDIA_TYPE_EXTENSIONS.get(media_type)
    if ext is None or (allowed is not None and media_type not in allowed):
        raise UnsupportedMediaType(
            f"Unsupported media type: {media_type or 'none'}",
            cause=ValueError(f"content type {content_type!r} not in allow-list"),
        )
    return media_type, ext
