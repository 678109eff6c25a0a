"""Security: JWT verification and secret encryption at rest."""
