"""Application DTOs (frozen dataclasses passed across layers)."""
