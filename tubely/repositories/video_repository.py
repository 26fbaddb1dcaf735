"""Video record store on top of a SQLAlchemy session."""
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from tubely.errors import PersistError
from tubely.models.video import Video

logger = logging.getLogger(__name__)


class VideoRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, video_id: str) -> Video | None:
        try:
            return self.db.query(Video).filter(Video.id == video_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistError("Couldn't load video record", cause=e) from e

    def list_for_user(self, user_id: str) -> list[Video]:
        return (
            self.db.query(Video)
            .filter(Video.user_id == user_id)
            .order_by(Video.created_at.desc())
            .all()
        )

    def create(self, user_id: str, title: str, description: str | None = None) -> Video:
        video = Video(user_id=user_id, title=title, description=description)
        self.db.add(video)
        self.db.commit()
        self.db.refresh(video)
        return video

    def update(self, video: Video) -> Video:
        """Commit pending changes on `video`. Raises PersistError and rolls back on failure."""
        try:
            self.db.add(video)
            self.db.commit()
            self.db.refresh(video)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistError(cause=e) from e
        return video

    def delete(self, video: Video) -> None:
        self.db.delete(video)
        self.db.commit()
