"""FastAPI dependencies."""

from __future__ import annotations

from pathlib import Path

from dubsync.jobs.manager import JobManager

_job_manager: JobManager | None = None


def init_job_manager(max_concurrent: int = 2, output_dir: Path | None = None) -> JobManager:
    """Create the process-wide JobManager at app startup."""
    global _job_manager
    _job_manager = JobManager(max_concurrent=max_concurrent, output_dir=output_dir)
    return _job_manager


def get_job_manager() -> JobManager:
    """Dependency returning the JobManager created by ``init_job_manager``."""
    if _job_manager is None:
        raise RuntimeError("job manager is not initialized; the app lifespan has not run")
    return _job_manager


async def shutdown_job_manager() -> None:
    """Cancel running exports and drop the JobManager."""
    global _job_manager
    if _job_manager is not None:
        await _job_manager.shutdown()
        _job_manager = None
