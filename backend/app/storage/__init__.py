"""
Storage module for S3-compatible object storage (Cloudflare R2).

Generated media is copied here from provider URLs; direct uploads land here too.
"""
from app.storage.r2_client import get_r2_client, R2Client, StorageError
from app.storage.migrator import AssetMigrator, get_asset_migrator

__all__ = ["get_r2_client", "R2Client", "StorageError", "AssetMigrator", "get_asset_migrator"]
