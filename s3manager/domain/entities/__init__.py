"""Domain entities."""

from s3manager.domain.entities.storage_config import StorageConfig, mask_value

__all__ = ["StorageConfig", "mask_value"]
