"""HTTP API for dubsync."""
