"""Inline thumbnails: the image itself is stored in the record as a data URL."""
import base64
from typing import BinaryIO
from tubely.assets.base import AssetStore, RequestOrigin
from tubely.errors import AssetIOError


class InlineAssetStore(AssetStore):
    def save(self, stream: BinaryIO) -> bytes:
        try:
            return stream.read()
        except OSError as e:
            raise AssetIOError("Couldn't read thumbnail", cause=e) from e

    @staticmethod
    def build_url(media_type: str, data: bytes) -> str:
        return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"

    def put(self, filename: str, stream: BinaryIO, media_type: str, origin: RequestOrigin) -> str:
        return self.build_url(media_type, self.save(stream))
