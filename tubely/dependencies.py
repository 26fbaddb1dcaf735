"""
Process-wide dependencies, built once at startup and kept on app.state.
Handlers get them through FastAPI Depends, so tests can build an app with fake stores.
"""
from dataclasses import dataclass
from typing import Any
from fastapi import Request
from tubely.assets.base import AssetStore
from tubely.assets.inline import InlineAssetStore
from tubely.assets.local import LocalAssetStore
from tubely.assets.remote import S3AssetStore, build_s3_client
from tubely.config import THUMBNAIL_STORAGE_DISK, THUMBNAIL_STORAGE_INLINE, Settings


@dataclass
class UploadDeps:
    jwt_secret: str
    jwt_algorithm: str
    thumbnail_store: AssetStore
    video_store: AssetStore
    max_thumbnail_size: int
    max_video_size: int


def build_thumbnail_store(settings: Settings) -> AssetStore:
    mode = settings.thumbnail_storage.strip().lower()
    if mode == THUMBNAIL_STORAGE_DISK:
        return LocalAssetStore(settings.assets_root)
    if mode == THUMBNAIL_STORAGE_INLINE:
        return InlineAssetStore()
    raise ValueError(
        f"THUMBNAIL_STORAGE must be {THUMBNAIL_STORAGE_DISK!r} or {THUMBNAIL_STORAGE_INLINE!r}, got {mode!r}"
    )


def build_upload_deps(settings: Settings, s3_client: Any = None) -> UploadDeps:
    if s3_client is None:
        s3_client = build_s3_client(settings)
    return UploadDeps(
        jwt_secret=settings.secret_key,
        jwt_algorithm=settings.algorithm,
        thumbnail_store=build_thumbnail_store(settings),
        video_store=S3AssetStore(
            s3_client,
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            staging_dir=settings.staging_dir,
        ),
        max_thumbnail_size=settings.max_thumbnail_size,
        max_video_size=settings.max_video_size,
    )


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_upload_deps(request: Request) -> UploadDeps:
    return request.app.state.upload_deps
