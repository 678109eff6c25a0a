"""External integrations (S3-compatible backends)."""
