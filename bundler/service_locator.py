"""Service locator for process-wide components."""

from typing import Optional

from bundler.migration import MigrationWorker

_migration_worker: Optional[MigrationWorker] = None


def set_migration_worker(worker: Optional[MigrationWorker]):
    """Set global migration worker instance"""
    global _migration_worker
    _migration_worker = worker


def get_migration_worker() -> MigrationWorker:
    """Get global migration worker instance, creating the default one on first use"""
    global _migration_worker
    if _migration_worker is None:
        _migration_worker = MigrationWorker()
    return _migration_worker
