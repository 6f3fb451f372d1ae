"""
Disk Ingestion Package

The bridge from audited results to files on disk. Every write is
sandboxed to one governed root and replaced atomically.
"""

from .contracts import BackupEntry, IngestPayload, IngestResult, IngestStatus
from .sandbox import PathSandbox
from .backups import BackupStore
from .bridge import DiskMaterializer, atomic_write

__all__ = [
    'BackupEntry', 'IngestPayload', 'IngestResult', 'IngestStatus',
    'PathSandbox', 'BackupStore',
    'DiskMaterializer', 'atomic_write',
]
