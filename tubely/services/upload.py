"""
Upload pipeline shared by the thumbnail and video endpoints.

Each request walks Authenticating -> Authorizing -> Validating -> Staging -> Persisting
-> Committing -> Done, or stops in Rejected with one UploadPipelineError. The body is not
read until the caller is known to own the record, and a location is only written to the
record after its store reported the bytes as stored.

If the store succeeds but the record update fails the asset is left orphaned: it is
stored but nothing points at it, and the client gets a 500. There is no compensating
delete; the orphan is logged with its location.
"""
import enum
import logging
import uuid
from dataclasses import dataclass
from typing import AsyncIterator
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData, UploadFile
from starlette.formparsers import MultiPartException, MultiPartParser
from starlette.requests import ClientDisconnect, Request
from tubely.assets.base import AssetStore, RequestOrigin
from tubely.assets.filenames import get_asset_filename
from tubely.assets.media_types import THUMBNAIL_MEDIA_TYPES, VIDEO_MEDIA_TYPES, media_type_to_ext
from tubely.auth import get_bearer_token, validate_jwt
from tubely.dependencies import UploadDeps
from tubely.errors import (
    BodyTooLarge,
    Forbidden,
    InvalidIdentifier,
    MalformedForm,
    NotFound,
    UploadPipelineError,
)
from tubely.models.video import Video
from tubely.repositories.video_repository import VideoRepository

logger = logging.getLogger(__name__)

MAX_FORM_FIELDS = 16


class UploadState(str, enum.Enum):
    AUTHENTICATING = "Authenticating"
    AUTHORIZING = "Authorizing"
    VALIDATING = "Validating"
    STAGING = "Staging"
    PERSISTING = "Persisting"
    COMMITTING = "Committing"
    DONE = "Done"
    REJECTED = "Rejected"


@dataclass(frozen=True)
class UploadTarget:
    form_field: str
    record_field: str
    allowed_media_types: frozenset[str]


THUMBNAIL = UploadTarget(form_field="thumbnail", record_field="thumbnail_url", allowed_media_types=THUMBNAIL_MEDIA_TYPES)
VIDEO = UploadTarget(form_field="video", record_field="video_url", allowed_media_types=VIDEO_MEDIA_TYPES)


def parse_video_id(raw: str) -> str:
    try:
        return str(uuid.UUID(raw))
    except (ValueError, TypeError, AttributeError) as e:
        raise InvalidIdentifier(cause=e) from e


def check_content_length(request: Request, max_bytes: int) -> None:
    """Reject on the declared length alone, before reading anything."""
    raw = request.headers.get("content-length")
    if raw is None:
        return
    try:
        length = int(raw)
    except ValueError as e:
        raise MalformedForm("Invalid Content-Length", cause=e) from e
    if length > max_bytes:
        raise BodyTooLarge(
            f"Request body too large (max {max_bytes} bytes)",
            cause=ValueError(f"Content-Length {length} > {max_bytes}"),
        )


class StreamAborted(MultiPartException):
    """Carries a pipeline error out of the body stream.

    MultiPartParser only closes the files it has opened when parsing fails with a
    MultiPartException, so errors raised from the stream have to be one.
    """

    def __init__(self, error: UploadPipelineError):
        super().__init__(error.message)
        self.error = error


async def limited_stream(request: Request, max_bytes: int) -> AsyncIterator[bytes]:
    """request.stream(), cut off as soon as more than max_bytes have arrived."""
    received = 0
    try:
        async for chunk in request.stream():
            received += len(chunk)
            if received > max_bytes:
                raise StreamAborted(
                    BodyTooLarge(
                        f"Request body too large (max {max_bytes} bytes)",
                        cause=ValueError(f"read {received} bytes > {max_bytes}"),
                    )
                )
            yield chunk
    except ClientDisconnect as e:
        raise StreamAborted(MalformedForm("Client disconnected during upload", cause=e)) from e


async def read_form_file(request: Request, field: str, max_bytes: int) -> tuple[FormData, UploadFile]:
    """Parse the multipart body under the size cap and return (form, file part `field`).

    The caller owns the form and must close it.
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith("multipart/form-data") or "boundary=" not in content_type:
        raise MalformedForm(cause=ValueError(f"content type {content_type!r} is not multipart/form-data"))
    parser = MultiPartParser(
        request.headers,
        limited_stream(request, max_bytes),
        max_files=1,
        max_fields=MAX_FORM_FIELDS,
    )
    try:
        form = await parser.parse()
    except StreamAborted as e:
        raise e.error from e
    except MultiPartException as e:
        raise MalformedForm(cause=e) from e
    upload = form.get(field)
    if not isinstance(upload, UploadFile):
        await form.close()
        raise MalformedForm(f"Couldn't get {field} file from form", cause=KeyError(field))
    return form, upload


class UploadOrchestrator:
    def __init__(self, deps: UploadDeps, db: Session):
        self.deps = deps
        self.videos = VideoRepository(db)

    async def upload_thumbnail(
        self, request: Request, video_id: str, credentials: HTTPAuthorizationCredentials | None
    ) -> Video:
        return await self._run(
            request, video_id, credentials, THUMBNAIL, self.deps.thumbnail_store, self.deps.max_thumbnail_size
        )

    async def upload_video(
        self, request: Request, video_id: str, credentials: HTTPAuthorizationCredentials | None
    ) -> Video:
        return await self._run(
            request, video_id, credentials, VIDEO, self.deps.video_store, self.deps.max_video_size
        )

    async def _run(
        self,
        request: Request,
        raw_video_id: str,
        credentials: HTTPAuthorizationCredentials | None,
        target: UploadTarget,
        store: AssetStore,
        max_bytes: int,
    ) -> Video:
        state = UploadState.AUTHENTICATING
        user_id = None
        form = None
        location = None
        try:
            video_id = parse_video_id(raw_video_id)
            token = get_bearer_token(credentials)
            user_id = validate_jwt(token, self.deps.jwt_secret, self.deps.jwt_algorithm)

            state = UploadState.AUTHORIZING
            video = await run_in_threadpool(self.videos.get, video_id)
            if video is None:
                raise NotFound(cause=LookupError(f"video {video_id}"))
            if video.user_id != user_id:
                raise Forbidden(
                    f"You don't have permission to upload a {target.form_field} for this video",
                    cause=PermissionError(f"user {user_id} is not owner {video.user_id}"),
                )

            state = UploadState.VALIDATING
            check_content_length(request, max_bytes)
            form, upload = await read_form_file(request, target.form_field, max_bytes)
            media_type, _ = media_type_to_ext(upload.content_type, target.allowed_media_types)
            filename = get_asset_filename(media_type)
            logger.info("Uploading %s for video %s by user %s as %s", target.form_field, video_id, user_id, filename)

            state = UploadState.STAGING
            await upload.seek(0)
            origin = RequestOrigin.from_request(request)

            state = UploadState.PERSISTING
            location = await run_in_threadpool(store.put, filename, upload.file, media_type, origin)

            state = UploadState.COMMITTING
            setattr(video, target.record_field, location)
            video = await run_in_threadpool(self.videos.update, video)

            state = UploadState.DONE
            logger.info("Video %s %s set to %s", video_id, target.record_field, _loggable(location))
            return video
        except UploadPipelineError as e:
            orphan = _loggable(location) if state is UploadState.COMMITTING else None
            _log_rejection(state, target, raw_video_id, user_id, e, orphan)
            raise
        finally:
            if form is not None:
                await form.close()


def _loggable(location: str) -> str:
    if location.startswith("data:"):
        return location.split(",", 1)[0] + ",..."
    return location


def _log_rejection(
    state: UploadState,
    target: UploadTarget,
    video_id: str,
    user_id: str | None,
    err: UploadPipelineError,
    orphan: str | None = None,
) -> None:
    """One log line per rejected upload; marks the error so the HTTP handler doesn't repeat it."""
    err.logged = True
    if orphan is not None:
        logger.error(
            "%s upload for video %s (user %s) -> %s in state %s: %s; orphaned asset %s",
            target.form_field, video_id, user_id, UploadState.REJECTED.value, state.value, err, orphan,
            exc_info=err.cause,
        )
    elif err.status_code >= 500:
        logger.error(
            "%s upload for video %s (user %s) -> %s in state %s: %s",
            target.form_field, video_id, user_id, UploadState.REJECTED.value, state.value, err,
            exc_info=err.cause,
        )
    else:
        logger.warning(
            "%s upload for video %s (user %s) -> %s in state %s: %s",
            target.form_field, video_id, user_id, UploadState.REJECTED.value, state.value, err,
        )
