"""Persistence: async engine/session, ORM models, repositories, migrations."""
