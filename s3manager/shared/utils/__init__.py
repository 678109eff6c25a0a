"""Small helpers: UTC datetimes and id/secret generators."""

from s3manager.shared.utils.datetime import ensure_utc, utc_now
from s3manager.shared.utils.generators import generate_cuid, generate_secret

__all__ = ["ensure_utc", "generate_cuid", "generate_secret", "utc_now"]
