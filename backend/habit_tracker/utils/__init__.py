"""Shared helpers: `db_utils` wraps the connection pool for services."""
