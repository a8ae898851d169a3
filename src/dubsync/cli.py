"""dubsync command-line interface with subcommands.

Usage:
    dubsync-cli rates <video> [--audio dub.wav]
    dubsync-cli preview <video> [--audio dub.wav] [--seek 50] [--seconds 10]
    dubsync-cli export <video> <audio> [-d output_dir] [--name clip.mp4]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dubsync.capture.session import CaptureSession
from dubsync.capture.target import CaptureTarget
from dubsync.config import settings
from dubsync.models.sync import SyncState
from dubsync.playback.track import AudioTrack, VideoTrack
from dubsync.sync.probe import DurationProbe
from dubsync.sync.rates import compute_rates


def _require_file(path_str: str) -> Path:
    path = Path(path_str).resolve()
    if not path.exists():
        print(f"Error: file not found: {path}", file=sys.stderr)
        sys.exit(1)
    return path


async def _load_pair(video_path: Path, audio_path: Path | None) -> tuple[VideoTrack, AudioTrack]:
    video = VideoTrack()
    audio = AudioTrack()
    await asyncio.gather(video.load(video_path), audio.load(audio_path))
    return video, audio


# --- Rates subcommand ---

async def cmd_rates(args: argparse.Namespace) -> None:
    """Print the playback rates that align the video with its dub."""
    video_path = _require_file(args.input)
    audio_path = _require_file(args.audio) if args.audio else None

    video, audio = await _load_pair(video_path, audio_path)
    try:
        pair = await DurationProbe(video, audio, timeout=args.timeout).resolve()
    finally:
        await video.close()
        await audio.close()

    state = SyncState(video_duration=pair.video_duration, audio_duration=pair.audio_duration)
    if pair.video_duration and pair.audio_duration:
        state.apply(compute_rates(pair.video_duration, pair.audio_duration))

    telemetry = state.telemetry()
    print(f"Video:    {_fmt_duration(pair.video_duration)}")
    print(f"Dub:      {_fmt_duration(pair.audio_duration)}")
    print(f"Rates:    video {state.video_rate:.3f}x, audio {state.audio_rate:.3f}x")
    print(f"Total:    {_fmt_duration(state.total_duration)}")
    print(f"Status:   {telemetry.label}")


def _fmt_duration(seconds: float | None) -> str:
    if seconds is None:
        return "unknown"
    minutes, secs = divmod(seconds, 60)
    return f"{int(minutes):02d}:{secs:06.3f}"


# --- Preview subcommand ---

async def cmd_preview(args: argparse.Namespace) -> None:
    """Play the pair headlessly and print sync telemetry as it runs."""
    from dubsync.playback.controller import PlaybackController

    video_path = _require_file(args.input)
    audio_path = _require_file(args.audio) if args.audio else None

    video, audio = await _load_pair(video_path, audio_path)
    controller = PlaybackController(video, audio, probe_timeout=args.timeout)
    try:
        async with controller:
            # Both tracks are loaded; one yield lets the probe apply rates.
            await asyncio.sleep(0)
            if args.seek:
                controller.seek(args.seek)
            controller.toggle_play()
            print(f"Playing: {controller.telemetry().label}")

            loop = asyncio.get_running_loop()
            deadline = loop.time() + args.seconds
            while controller.state.is_playing and loop.time() < deadline:
                await asyncio.sleep(args.interval)
                drift = 0.0
                if video.duration and audio.duration:
                    drift = controller.drift.divergence(
                        video.current_time, video.duration,
                        audio.current_time, audio.duration,
                    )
                print(
                    f"  {controller.progress:5.1f}%  video {video.current_time:7.3f}s"
                    f"  audio {audio.current_time:7.3f}s  drift {drift * 100:4.1f}%"
                )
            if controller.state.is_playing:
                controller.toggle_play()
    finally:
        await video.close()
        await audio.close()

    print(f"Drift corrections: {controller.drift.corrections}")


# --- Export subcommand ---

async def cmd_export(args: argparse.Namespace) -> None:
    """Record the synchronized pair into one file."""
    video_path = _require_file(args.input)
    audio_path = _require_file(args.audio)
    output_dir = Path(args.output_dir) if args.output_dir else settings.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)

    def progress_cb(progress: float, status: str) -> None:
        bar_width = 30
        filled = int(bar_width * progress / 100)
        bar = "=" * filled + "-" * (bar_width - filled)
        print(f"\r  [{bar}] {progress:.0f}% {status}", end="", flush=True)

    video, audio = await _load_pair(video_path, audio_path)
    session = CaptureSession(
        video,
        audio,
        CaptureTarget(args.name or video_path.name),
        fps=args.fps,
        progress_callback=progress_cb,
    )
    print(f"Exporting: {video_path.name} + {audio_path.name}")
    try:
        job = await session.run()
    finally:
        await video.close()
        await audio.close()
    print()  # newline after progress bar

    if job.artifact is None:
        print(f"Error: export failed ({job.error_kind}): {job.error}", file=sys.stderr)
        sys.exit(1)

    output_path = output_dir / job.artifact.filename
    output_path.write_bytes(job.artifact.data)
    print(f"  Duration: {job.target_duration_seconds:.2f}s, {job.frames_recorded} frames")
    print(f"\nDone: {output_path}")


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="dubsync-cli",
        description="dubsync - synchronized dub preview and export",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- rates ---
    p_rates = subparsers.add_parser("rates", help="Show synchronization rates")
    p_rates.add_argument("input", type=str, help="Original video file")
    p_rates.add_argument("--audio", type=str, help="Dub audio file")
    p_rates.add_argument("--timeout", type=float, default=None, help="Metadata timeout in seconds")

    # --- preview ---
    p_preview = subparsers.add_parser("preview", help="Headless synchronized playback")
    p_preview.add_argument("input", type=str, help="Original video file")
    p_preview.add_argument("--audio", type=str, help="Dub audio file")
    p_preview.add_argument("--seek", type=float, default=0.0, help="Start position in percent")
    p_preview.add_argument("--seconds", type=float, default=10.0, help="How long to play (default: 10)")
    p_preview.add_argument("--interval", type=float, default=1.0, help="Report interval (default: 1)")
    p_preview.add_argument("--timeout", type=float, default=None, help="Metadata timeout in seconds")

    # --- export ---
    p_export = subparsers.add_parser("export", help="Export the synchronized video")
    p_export.add_argument("input", type=str, help="Original video file")
    p_export.add_argument("audio", type=str, help="Dub audio file")
    p_export.add_argument("--name", type=str, help="Source name for the output file")
    p_export.add_argument("--fps", type=int, default=None, help="Capture frame rate")
    p_export.add_argument("-d", "--output-dir", type=str, help="Output directory")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Dispatch
    if args.command == "rates":
        asyncio.run(cmd_rates(args))
    elif args.command == "preview":
        asyncio.run(cmd_preview(args))
    elif args.command == "export":
        asyncio.run(cmd_export(args))


if __name__ == "__main__":
    main()
