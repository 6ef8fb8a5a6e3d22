"""
Extractors
==========

NIS file readers and parquet snapshot storage.
"""

from .nis_loader import read_nis_table, load_nis_tables
from .snapshot_store import save_snapshot, load_snapshot, snapshot_exists

__all__ = [
    'read_nis_table',
    'load_nis_tables',
    'save_snapshot',
    'load_snapshot',
    'snapshot_exists',
]
