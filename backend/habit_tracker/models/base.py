from sqlalchemy import Column, DateTime, MetaData, text

metadata = MetaData()


def timestamp_columns():
    """created_at / updated_at pair shared by every table (UTC, set by SQLite)."""
    return [
        Column("created_at", DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
        Column("updated_at", DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP")),
    ]
