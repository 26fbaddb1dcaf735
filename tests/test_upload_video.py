import asyncio
import re

import pytest
from botocore.exceptions import ClientError
from fastapi.security import HTTPAuthorizationCredentials

from conftest import SECRET, VIDEO_CAP, make_request, multipart_body, multipart_body_of_size, multipart_headers
from tubely.assets.remote import STAGING_PREFIX
from tubely.auth import create_access_token
from tubely.errors import MalformedForm, PersistError
from tubely.models import Video
from tubely.repositories.video_repository import VideoRepository
from tubely.services.upload import UploadOrchestrator

MP4 = b"\x00\x00\x00\x18ftypmp42" + b"\x11" * (100 * 1024)
VIDEO_URL_RE = re.compile(r"^https://tubely-test\.s3\.us-east-2\.amazonaws\.com/([A-Za-z0-9_-]{43}\.mp4)$")


def post_video(client, video_id, user_id=None, content_type="video/mp4", payload=MP4):
    return client.post(
        f"/api/videos/{video_id}/video",
        content=multipart_body("video", content_type, payload, filename="clip.mp4"),
        headers=multipart_headers(user_id),
    )


def staged_files(staging_dir):
    return list(staging_dir.glob(f"{STAGING_PREFIX}*")) if staging_dir.exists() else []


def test_owner_uploads_mp4(client, db, s3_client, owner, video, staging_dir):
    res = post_video(client, video.id, owner.id)
    assert res.status_code == 200
    match = VIDEO_URL_RE.match(res.json()["video_url"])
    assert match
    key = match.group(1)

    kwargs = s3_client.put_object.call_args.kwargs
    assert kwargs["Bucket"] == "tubely-test"
    assert kwargs["Key"] == key
    assert kwargs["ContentType"] == "video/mp4"
    assert s3_client.uploaded[key] == MP4

    db.expire_all()
    assert db.get(Video, video.id).video_url == res.json()["video_url"]
    assert staged_files(staging_dir) == []


def test_non_owner_never_reaches_s3(client, db, s3_client, stranger, video, staging_dir):
    res = post_video(client, video.id, stranger.id)
    assert res.status_code == 403
    s3_client.put_object.assert_not_called()
    db.expire_all()
    assert db.get(Video, video.id).video_url is None
    assert staged_files(staging_dir) == []


@pytest.mark.parametrize("content_type", ["video/quicktime", "image/png", "video/webm"])
def test_only_mp4_is_accepted(client, s3_client, owner, video, staging_dir, content_type):
    res = post_video(client, video.id, owner.id, content_type=content_type)
    assert res.status_code == 400
    s3_client.put_object.assert_not_called()
    assert staged_files(staging_dir) == []


def test_content_type_parameters_are_ignored(client, owner, video):
    res = post_video(client, video.id, owner.id, content_type="video/mp4; codecs=avc1")
    assert res.status_code == 200


def test_missing_token(client, s3_client, video):
    res = post_video(client, video.id)
    assert res.status_code == 401
    s3_client.put_object.assert_not_called()


def test_body_at_cap_is_accepted(client, owner, video, staging_dir):
    res = client.post(
        f"/api/videos/{video.id}/video",
        content=multipart_body_of_size("video", "video/mp4", VIDEO_CAP),
        headers=multipart_headers(owner.id),
    )
    assert res.status_code == 200
    assert staged_files(staging_dir) == []


def test_body_over_cap_is_rejected_before_s3(client, db, s3_client, owner, video, staging_dir):
    res = client.post(
        f"/api/videos/{video.id}/video",
        content=multipart_body_of_size("video", "video/mp4", VIDEO_CAP + 1),
        headers=multipart_headers(owner.id),
    )
    assert res.status_code == 400
    s3_client.put_object.assert_not_called()
    assert staged_files(staging_dir) == []
    db.expire_all()
    assert db.get(Video, video.id).video_url is None


def test_s3_failure_is_500_and_cleans_up(client, db, s3_client, owner, video, staging_dir):
    s3_client.put_object.side_effect = ClientError(
        {"Error": {"Code": "SlowDown", "Message": "Please reduce your request rate."}}, "PutObject"
    )
    res = post_video(client, video.id, owner.id)
    assert res.status_code == 500
    assert res.json()["detail"] == "Couldn't upload asset to object storage"
    assert s3_client.put_object.call_count == 1
    assert staged_files(staging_dir) == []
    db.expire_all()
    assert db.get(Video, video.id).video_url is None


def test_no_staging_files_left_after_any_outcome(client, s3_client, owner, stranger, video, staging_dir):
    post_video(client, video.id, owner.id)
    post_video(client, video.id, stranger.id)
    post_video(client, video.id, owner.id, content_type="image/bmp")
    s3_client.put_object.side_effect = ClientError({"Error": {"Code": "500", "Message": "x"}}, "PutObject")
    post_video(client, video.id, owner.id)
    assert staged_files(staging_dir) == []


def test_disconnect_mid_upload_is_malformed_form(app, db, s3_client, owner, video, staging_dir):
    chunks = [multipart_body("video", "video/mp4", MP4)[:4096]]
    request = make_request(chunks, disconnect=True)
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=create_access_token(owner.id, SECRET))
    orchestrator = UploadOrchestrator(app.state.upload_deps, db)

    with pytest.raises(MalformedForm):
        asyncio.run(orchestrator.upload_video(request, video.id, credentials))
    s3_client.put_object.assert_not_called()
    assert staged_files(staging_dir) == []
    db.expire_all()
    assert db.get(Video, video.id).video_url is None


def test_record_update_failure_leaves_orphaned_object(client, db, s3_client, owner, video, staging_dir, monkeypatch):
    def failing_update(self, record):
        raise PersistError(cause=RuntimeError("database is locked"))

    monkeypatch.setattr(VideoRepository, "update", failing_update)
    res = post_video(client, video.id, owner.id)
    assert res.status_code == 500
    assert res.json()["detail"] == "Couldn't update video record"
    # The object is in the bucket but the record still has no URL.
    assert len(s3_client.uploaded) == 1
    assert staged_files(staging_dir) == []
    monkeypatch.undo()
    db.expire_all()
    assert db.get(Video, video.id).video_url is None
