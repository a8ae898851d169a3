"""Export of a synchronized video + dub audio pair."""

from dubsync.capture.models import CaptureArtifact, CaptureJob, CaptureStatus
from dubsync.capture.session import CaptureSession, artifact_filename
from dubsync.capture.target import CaptureTarget, CaptureTargetRegistry

__all__ = [
    "CaptureArtifact",
    "CaptureJob",
    "CaptureSession",
    "CaptureStatus",
    "CaptureTarget",
    "CaptureTargetRegistry",
    "artifact_filename",
]
