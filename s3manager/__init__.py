"""s3manager: multi-tenant S3-compatible storage configuration and transfer service."""
