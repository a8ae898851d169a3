"""Custom exceptions for dubsync."""


class DubSyncError(Exception):
    """Base exception for dubsync."""

    pass


class FFmpegError(DubSyncError):
    """FFmpeg or ffprobe execution failed."""

    pass


class MetadataUnavailable(DubSyncError):
    """A media source never reported a finite duration or resolution."""

    pass


class CaptureError(DubSyncError):
    """An export attempt failed. Terminal for that attempt."""

    pass


class DecodeFailure(CaptureError):
    """Dub audio could not be fetched or decoded into a sample buffer."""

    pass


class RecorderFailure(CaptureError):
    """The multiplexing recorder reported an error."""

    pass


class CaptureCancelled(CaptureError):
    """The export was cancelled before reaching its target duration."""

    pass


class CaptureInProgressError(DubSyncError):
    """Another capture session already holds the output target."""

    pass
