"""
Video records and their assets.
Thumbnail goes to local disk (or inline, see THUMBNAIL_STORAGE); the video file goes to S3.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from tubely.auth import get_current_user_id, security
from tubely.database import get_db
from tubely.dependencies import UploadDeps, get_upload_deps
from tubely.models.video import Video
from tubely.repositories.video_repository import VideoRepository
from tubely.schemas.video import VideoCreate, VideoResponse
from tubely.services.upload import UploadOrchestrator

router = APIRouter(prefix="/api/videos", tags=["videos"])


def _get_owned_video(video_id: str, user_id: str, db: Session) -> Video:
    video = VideoRepository(db).get(video_id)
    if not video:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")
    if video.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You don't own this video")
    return video


@router.post("", response_model=VideoResponse, status_code=status.HTTP_201_CREATED)
def create_video(
    body: VideoCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Create a draft video record owned by the caller (no assets yet)."""
    title = body.title.strip()
    if not title:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title is required")
    return VideoRepository(db).create(user_id, title, body.description)


@router.get("", response_model=list[VideoResponse])
def list_videos(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return VideoRepository(db).list_for_user(user_id)


@router.get("/{video_id}", response_model=VideoResponse)
def get_video(
    video_id: str,
    _user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    video = VideoRepository(db).get(video_id)
    if not video:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")
    return video


@router.delete("/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_video(
    video_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Owner only. Stored assets are left in place."""
    video = _get_owned_video(video_id, user_id, db)
    VideoRepository(db).delete(video)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------- Uploads: body is parsed inside the pipeline, after the ownership check ----------


@router.put("/{video_id}/thumbnail", response_model=VideoResponse)
async def upload_thumbnail(
    video_id: str,
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    deps: UploadDeps = Depends(get_upload_deps),
    db: Session = Depends(get_db),
):
    """Multipart field `thumbnail` (jpeg, png or gif)."""
    return await UploadOrchestrator(deps, db).upload_thumbnail(request, video_id, credentials)


@router.post("/{video_id}/video", response_model=VideoResponse)
async def upload_video(
    video_id: str,
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    deps: UploadDeps = Depends(get_upload_deps),
    db: Session = Depends(get_db),
):
    """Multipart field `video` (mp4 only), stored in S3."""
    return await UploadOrchestrator(deps, db).upload_video(request, video_id, credentials)
