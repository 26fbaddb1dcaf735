from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO
from starlette.requests import Request


@dataclass(frozen=True)
class RequestOrigin:
    """Scheme and host the client used to reach us; served asset URLs are built from it."""
    scheme: str
    host: str

    @classmethod
    def from_request(cls, request: Request) -> "RequestOrigin":
        scheme = "https" if request.url.scheme == "https" else "http"
        host = request.headers.get("host") or request.url.netloc
        return cls(scheme=scheme, host=host)


class AssetStore(ABC):
    """Storage backend for uploaded assets."""

    @abstractmethod
    def put(self, filename: str, stream: BinaryIO, media_type: str, origin: RequestOrigin) -> str:
        """Persist the whole stream under `filename` and return the location to record.

        Must only return once the bytes are durably stored; raise on any failure.
        """
