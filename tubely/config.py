from pydantic_settings import BaseSettings
from functools import lru_cache

THUMBNAIL_STORAGE_DISK = "disk"
THUMBNAIL_STORAGE_INLINE = "inline"


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./tubely.db"

    # JWT
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Frontend URL for CORS
    frontend_url: str = "http://localhost:3000"

    # Local assets: flat directory served under /assets
    assets_root: str = "./assets"

    # Temp dir for staging video uploads (empty = system temp dir)
    staging_dir: str = ""

    # "disk" = save under assets_root and serve a URL; "inline" = base64 data URL in the record
    thumbnail_storage: str = THUMBNAIL_STORAGE_DISK

    # Request body caps (bytes)
    max_thumbnail_size: int = 10 << 20  # 10 MiB
    max_video_size: int = 1 << 30  # 1 GiB

    # S3
    s3_bucket: str = "tubely-videos"
    s3_region: str = "us-east-1"
    s3_endpoint_url: str = ""  # e.g. http://localhost:9000 for MinIO
    aws_access_key_id: str = ""  # empty = boto3 default credential chain
    aws_secret_access_key: str = ""

    platform: str = "dev"
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
