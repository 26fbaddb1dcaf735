from tubely.assets.base import AssetStore, RequestOrigin
from tubely.assets.filenames import get_asset_filename
from tubely.assets.inline import InlineAssetStore
from tubely.assets.local import LocalAssetStore
from tubely.assets.media_types import media_type_to_ext, parse_media_type
from tubely.assets.remote import S3AssetStore, StagedUpload

__all__ = [
    "AssetStore", "RequestOrigin", "get_asset_filename", "InlineAssetStore", "LocalAssetStore",
    "media_type_to_ext", "parse_media_type", "S3AssetStore", "StagedUpload",
]
