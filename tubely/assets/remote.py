"""
Videos in S3. The request body is first staged to a temp file on disk (so a 1 GB upload
is never held in memory), then sent with a single PutObject. No retries: a failed
transfer is final for the request.
"""
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Iterator
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from tubely.assets.base import AssetStore, RequestOrigin
from tubely.config import Settings
from tubely.errors import AssetIOError, UploadError

logger = logging.getLogger(__name__)

STAGING_PREFIX = "tubely-upload-"
CHUNK_SIZE = 1024 * 1024  # 1 MB


def build_s3_client(settings: Settings) -> Any:
    """One S3 client per process, built from settings (falls back to the default credential chain)."""
    session = boto3.session.Session(
        region_name=settings.s3_region,
        aws_access_key_id=settings.aws_access_key_id or None,
        aws_secret_access_key=settings.aws_secret_access_key or None,
    )
    return session.client("s3", endpoint_url=settings.s3_endpoint_url or None)


@dataclass
class StagedUpload:
    path: Path
    file: BinaryIO
    size: int


class S3AssetStore(AssetStore):
    def __init__(self, client: Any, bucket: str, region: str, staging_dir: str | None = None):
        self.client = client
        self.bucket = bucket
        self.region = region
        self.staging_dir = staging_dir or None

    @contextmanager
    def stage(self, stream: BinaryIO, suffix: str = "") -> Iterator[StagedUpload]:
        """Copy `stream` into a temp file rewound to offset 0. The file is removed when the block exits."""
        if self.staging_dir:
            Path(self.staging_dir).mkdir(parents=True, exist_ok=True)
        try:
            fd, name = tempfile.mkstemp(prefix=STAGING_PREFIX, suffix=suffix, dir=self.staging_dir)
        except OSError as e:
            raise AssetIOError("Couldn't create temp file", cause=e) from e
        path = Path(name)
        try:
            with os.fdopen(fd, "w+b") as tmp:
                try:
                    shutil.copyfileobj(stream, tmp, CHUNK_SIZE)
                    size = tmp.tell()
                    tmp.seek(0)
                except OSError as e:
                    raise AssetIOError("Couldn't save video to temp file", cause=e) from e
                yield StagedUpload(path=path, file=tmp, size=size)
        finally:
            path.unlink(missing_ok=True)

    def upload(self, staged: StagedUpload, key: str, content_type: str) -> dict:
        try:
            return self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=staged.file,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise UploadError(cause=e) from e

    def build_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def put(self, filename: str, stream: BinaryIO, media_type: str, origin: RequestOrigin) -> str:
        with self.stage(stream, suffix=Path(filename).suffix) as staged:
            logger.info("Uploading %s (%d bytes) to s3://%s", filename, staged.size, self.bucket)
            self.upload(staged, filename, media_type)
        return self.build_url(filename)
