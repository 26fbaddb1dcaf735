from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from starlette.requests import Request

from tubely.auth import create_access_token, hash_password
from tubely.config import Settings
from tubely.database import Base
from tubely.main import create_app
from tubely.models import User, Video

SECRET = "test-secret-key-for-testing-only-32-chars"
BOUNDARY = "tubelytestboundary"
THUMBNAIL_CAP = 64 * 1024
VIDEO_CAP = 256 * 1024


def multipart_body(field: str, content_type: str, payload: bytes, filename: str = "upload.bin") -> bytes:
    return (
        f"--{BOUNDARY}\r\n"
        f'Content-Disposition: form-data; name="{field}"; filename="{filename}"\r\n'
        f"Content-Type: {content_type}\r\n"
        "\r\n"
    ).encode() + payload + f"\r\n--{BOUNDARY}--\r\n".encode()


def multipart_body_of_size(field: str, content_type: str, total_size: int) -> bytes:
    """Multipart body whose total length is exactly total_size bytes."""
    overhead = len(multipart_body(field, content_type, b""))
    body = multipart_body(field, content_type, b"x" * (total_size - overhead))
    assert len(body) == total_size
    return body


def multipart_headers(user_id: str | None = None) -> dict:
    headers = {"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"}
    if user_id:
        headers.update(auth_headers(user_id))
    return headers


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, SECRET)}"}


def make_request(chunks: list[bytes], disconnect: bool = False, content_type: str | None = None) -> Request:
    """Bare ASGI request whose body arrives in `chunks`, then ends or the client goes away."""
    messages = [{"type": "http.request", "body": chunk, "more_body": True} for chunk in chunks]
    if disconnect:
        messages.append({"type": "http.disconnect"})
    else:
        messages.append({"type": "http.request", "body": b"", "more_body": False})

    async def receive():
        return messages.pop(0)

    content_type = content_type or f"multipart/form-data; boundary={BOUNDARY}"
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/",
        "raw_path": b"/",
        "query_string": b"",
        "headers": [(b"content-type", content_type.encode()), (b"host", b"testserver")],
        "scheme": "http",
        "server": ("testserver", 80),
    }
    return Request(scope, receive)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        secret_key=SECRET,
        assets_root=str(tmp_path / "assets"),
        staging_dir=str(tmp_path / "staging"),
        thumbnail_storage="disk",
        max_thumbnail_size=THUMBNAIL_CAP,
        max_video_size=VIDEO_CAP,
        s3_bucket="tubely-test",
        s3_region="us-east-2",
    )


@pytest.fixture
def session_factory(settings: Settings):
    engine = create_engine(settings.database_url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def s3_client() -> MagicMock:
    """Fake S3 client that keeps what was put, keyed by object key."""
    client = MagicMock()
    client.uploaded = {}

    def put_object(**kwargs):
        client.uploaded[kwargs["Key"]] = kwargs["Body"].read()
        return {"ETag": '"fake-etag"'}

    client.put_object.side_effect = put_object
    return client


@pytest.fixture
def app(settings: Settings, s3_client: MagicMock, session_factory):
    # session_factory creates the tables; the app opens its own engine on the same file
    return create_app(settings, s3_client=s3_client)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def owner(db: Session) -> User:
    user = User(email="owner@example.com", password=hash_password("secret123"))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def stranger(db: Session) -> User:
    user = User(email="stranger@example.com", password=hash_password("secret123"))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def video(db: Session, owner: User) -> Video:
    record = Video(user_id=owner.id, title="Boots in the snow", description="Test clip")
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def assets_dir(settings: Settings) -> Path:
    return Path(settings.assets_root)


@pytest.fixture
def staging_dir(settings: Settings) -> Path:
    return Path(settings.staging_dir)
