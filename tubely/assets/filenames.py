import base64
import secrets
from tubely.assets.media_types import media_type_to_ext
from tubely.errors import RandomnessFailure

TOKEN_BYTES = 32


def random_token(nbytes: int = TOKEN_BYTES) -> str:
    """Unpadded base64url of `nbytes` from the OS CSPRNG (43 chars for 32 bytes)."""
    try:
        raw = secrets.token_bytes(nbytes)
    except (OSError, NotImplementedError) as e:
        raise RandomnessFailure(cause=e) from e
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def get_asset_filename(media_type: str) -> str:
    """New random filename carrying the extension mapped from `media_type`.

    Never derived from a client-supplied name, and not checked against existing files.
    """
    _, ext = media_type_to_ext(media_type)
    return f"{random_token()}{ext}"
