"""Application layer: DTOs, ports, and services (registry, transfer engine)."""
