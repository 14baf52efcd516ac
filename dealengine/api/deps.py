"""FastAPI dependencies."""

from dealengine.db.session import AsyncSessionLocal
from dealengine.ingest.repository import SqlSnapshotSource


async def get_snapshot_source() -> SqlSnapshotSource:
    """Dependency for the database-backed snapshot source."""
    return SqlSnapshotSource(AsyncSessionLocal)
