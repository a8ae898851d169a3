"""Job management for the dubsync API."""

from dubsync.jobs.manager import JobManager
from dubsync.jobs.models import Job, JobResult, JobStatus, JobType

__all__ = ["Job", "JobManager", "JobResult", "JobStatus", "JobType"]
