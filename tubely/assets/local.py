"""Thumbnails on local disk, served by the app under /assets."""
import logging
import shutil
import threading
from pathlib import Path
from typing import BinaryIO
from tubely.assets.base import AssetStore, RequestOrigin
from tubely.errors import AssetIOError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1 MB


class LocalAssetStore(AssetStore):
    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._ready = False
        self._lock = threading.Lock()

    def ensure(self) -> None:
        """Create the asset root if missing. Safe to call any number of times."""
        if self._ready:
            return
        with self._lock:
            if not self._ready:
                self.root.mkdir(parents=True, exist_ok=True)
                self._ready = True

    def path_for(self, filename: str) -> Path:
        # Filenames are generated, but never let one escape the flat root.
        if not filename or Path(filename).name != filename:
            raise AssetIOError(cause=ValueError(f"invalid asset filename {filename!r}"))
        return self.root / filename

    def save(self, filename: str, stream: BinaryIO) -> Path:
        """Write the whole stream to root/filename. On AssetIOError the file may or may not exist."""
        try:
            self.ensure()
            path = self.path_for(filename)
            with path.open("wb") as f:
                shutil.copyfileobj(stream, f, CHUNK_SIZE)
        except OSError as e:
            raise AssetIOError(f"Couldn't save {filename}", cause=e) from e
        return path

    @staticmethod
    def build_url(host: str, scheme: str, filename: str) -> str:
        return f"{scheme}://{host}/assets/{filename}"

    def put(self, filename: str, stream: BinaryIO, media_type: str, origin: RequestOrigin) -> str:
        path = self.save(filename, stream)
        logger.info("Saved %s asset to %s", media_type, path)
        return self.build_url(origin.host, origin.scheme, filename)
