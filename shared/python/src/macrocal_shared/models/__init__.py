"""
macrocal_shared.models — Pydantic models matching each database table.

These models are used by:
- packages/pipeline: validate data before writing to Supabase
- packages/api: serialize run results

Row models provide .to_insert_dict() -> dict; the ones read back from the
store (Release, DataSource, SyncLog) also provide .from_db_row(row).
"""

from macrocal_shared.models.indicators import Indicator, Release, RevisionRecord
from macrocal_shared.models.sync import DataSource, SyncLog

__all__ = [
    "Indicator",
    "Release",
    "RevisionRecord",
    "DataSource",
    "SyncLog",
]
