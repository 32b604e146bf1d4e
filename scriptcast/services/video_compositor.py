"""Video Compositor - drives ffmpeg to build overlay-mode and footage-mode videos."""

from pathlib import Path
from typing import Any, Optional

from scriptcast.core.config import Settings
from scriptcast.core.exceptions import CommandNotFound, CommandTimeout, CompositionError
from scriptcast.models.schemas import ConcatEntry, PreparedClip, ProcessingOptions, QualityTier
from scriptcast.services.command_executor import CommandExecutor, ThrottledProgressLogger
from scriptcast.utils.text_utils import escape_drawtext

QUALITY_PRESETS = {
    QualityTier.LOW: {"preset": "fast", "crf": 30, "bitrate": "1M"},
    QualityTier.MEDIUM: {"preset": "medium", "crf": 26, "bitrate": "2M"},
    QualityTier.HIGH: {"preset": "slow", "crf": 23, "bitrate": "4M"},
}


def encoder_args(options: ProcessingOptions) -> list[str]:
    """Video encoder arguments for the options' quality tier."""
    preset = QUALITY_PRESETS[options.quality]
    bitrate = preset["bitrate"]
    bufsize = f"{int(bitrate[:-1]) * 2}M"
    return [
        "-c:v",
        options.video_codec,
        "-preset",
        preset["preset"],
        "-crf",
        str(preset["crf"]),
        "-maxrate",
        bitrate,
        "-bufsize",
        bufsize,
        "-pix_fmt",
        "yuv420p",
    ]


def concat_list_line(path: Path) -> str:
    """One concat-demuxer line, quoting the path."""
    quoted = str(path.resolve()).replace("'", "'\\''")
    return f"file '{quoted}'"


class VideoCompositor:
    """Builds final videos from an audio track and either a text overlay or stock footage."""

    def __init__(self, settings: Settings, logger: Any, executor: CommandExecutor):
        """
        Initialize video compositor.

        Args:
            settings: Application settings
            logger: Logger instance
            executor: Command executor for ffmpeg/ffprobe
        """
        self.settings = settings
        self.logger = logger
        self.executor = executor

    # ------------------------------------------------------------------
    # Probing
    # ------------------------------------------------------------------

    def probe_duration(self, path: Path) -> float:
        """
        Read a media file's duration with ffprobe.

        Args:
            path: Media file

        Returns:
            Duration in seconds

        Raises:
            CompositionError: If ffprobe fails or prints no duration
        """
        args = [
            self.settings.ffprobe_binary,
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        try:
            result = self.executor.run(args, timeout=self.settings.ffprobe_timeout_seconds)
        except (CommandTimeout, CommandNotFound) as e:
            raise CompositionError(f"ffprobe failed for {path.name}: {e}") from e
        if not result.ok:
            raise CompositionError(f"ffprobe failed for {path.name}", diagnostics=result.stderr.strip() or None)
        try:
            return float(result.stdout.strip().splitlines()[0])
        except (IndexError, ValueError) as e:
            raise CompositionError(f"ffprobe reported no duration for {path.name}") from e

    # ------------------------------------------------------------------
    # Overlay mode
    # ------------------------------------------------------------------

    def render_overlay(
        self,
        audio_path: Path,
        output_path: Path,
        options: ProcessingOptions,
        audio_duration: float,
    ) -> Path:
        """
        Render a solid-color video with centered text or image over the audio track.

        Output length is clamped to the audio duration.

        Args:
            audio_path: Combined audio track
            output_path: Destination video
            options: Processing options
            audio_duration: Measured audio duration in seconds

        Returns:
            Path to the rendered video

        Raises:
            CompositionError: If ffmpeg exits unsuccessfully
        """
        source = f"color=c={options.background_color}:s={options.width}x{options.height}:r={options.fps}"
        args = [self.settings.ffmpeg_binary, "-y", "-f", "lavfi", "-i", source, "-i", str(audio_path)]

        if options.overlay_image and Path(options.overlay_image).exists():
            args += ["-loop", "1", "-i", str(options.overlay_image)]
            graph = (
                f"[2:v]scale={options.width}:{options.height}:force_original_aspect_ratio=decrease[img];"
                f"[0:v][img]overlay=(W-w)/2:(H-h)/2:shortest=1[v]"
            )
            args += ["-filter_complex", graph, "-map", "[v]"]
        else:
            if options.overlay_text:
                drawtext = (
                    f"drawtext=text={escape_drawtext(options.overlay_text)}"
                    f":fontsize={options.font_size}:fontcolor={options.font_color}"
                    f":x=(w-text_w)/2:y=(h-text_h)/2"
                )
                args += ["-vf", drawtext]
            args += ["-map", "0:v:0"]

        args += [
            "-map",
            "1:a:0",
            "-c:v",
            options.video_codec,
            "-preset",
            "ultrafast",
            "-crf",
            "30",
            "-pix_fmt",
            "yuv420p",
            "-c:a",
            options.audio_codec,
            "-b:a",
            options.audio_bitrate,
            "-shortest",
            "-t",
            f"{audio_duration:.3f}",
            "-movflags",
            "+faststart",
            str(output_path),
        ]

        self.logger.info(
            f"🎬 Rendering overlay video {options.width}x{options.height}@{options.fps}fps ({audio_duration:.1f}s)"
        )
        self._run_ffmpeg(args, "overlay render", audio_duration)
        return output_path

    # ------------------------------------------------------------------
    # Footage mode
    # ------------------------------------------------------------------

    def plan_concat(self, clips: list[PreparedClip], target_duration: float) -> list[ConcatEntry]:
        """
        Choose clip contributions until the target is covered.

        Stops once within the concat tolerance of the target; the last clip is trimmed
        to the remaining time and contributions shorter than the minimum are skipped.

        Args:
            clips: Prepared clips in preference order
            target_duration: Duration to cover in seconds

        Returns:
            Ordered concat entries
        """
        entries: list[ConcatEntry] = []
        total = 0.0
        for prepared in clips:
            remaining = target_duration - total
            if remaining <= self.settings.concat_tolerance_seconds:
                break
            take = min(prepared.actual_duration, remaining)
            if take < self.settings.min_clip_contribution_seconds:
                continue
            entries.append(ConcatEntry(path=prepared.path, duration=take))
            total += take
        return entries

    def render_footage(
        self,
        clips: list[PreparedClip],
        audio_path: Path,
        output_path: Path,
        options: ProcessingOptions,
        audio_duration: float,
        work_dir: Path,
    ) -> tuple[Path, int]:
        """
        Concatenate stock clips and mux them against the audio track.

        Clips are normalized to a common size, frame rate and pixel format; the audio
        drives the output length and the last frame is held if footage falls short.

        Args:
            clips: Prepared clips
            audio_path: Combined audio track
            output_path: Destination video
            options: Processing options
            audio_duration: Measured audio duration in seconds
            work_dir: Job-scoped working directory

        Returns:
            (path to rendered video, number of clips used)

        Raises:
            CompositionError: If no clip is usable or ffmpeg exits unsuccessfully
        """
        plan = self.plan_concat(clips, audio_duration)
        if not plan:
            raise CompositionError("No usable clips to concatenate")

        planned_total = sum(entry.duration for entry in plan)
        self.logger.info(f"🎞️ Concatenating {len(plan)} clips ({planned_total:.1f}s for {audio_duration:.1f}s audio)")

        normalized_dir = work_dir / "normalized"
        normalized_dir.mkdir(parents=True, exist_ok=True)
        normalized = []
        for i, entry in enumerate(plan):
            target = normalized_dir / f"segment_{i:03d}.mp4"
            self._normalize_clip(entry, target, options)
            normalized.append(target)

        list_path = work_dir / "concat_list.txt"
        list_path.write_text("\n".join(concat_list_line(path) for path in normalized) + "\n", encoding="utf-8")

        args = [
            self.settings.ffmpeg_binary,
            "-y",
            "-f",
            "concat",
            "-safe",
            "0",
            "-i",
            str(list_path),
            "-i",
            str(audio_path),
            "-map",
            "0:v:0",
            "-map",
            "1:a:0",
        ]
        shortfall = audio_duration - planned_total
        if shortfall > 0:
            args += ["-vf", f"tpad=stop_mode=clone:stop_duration={shortfall + 0.5:.3f}"]
        args += encoder_args(options)
        args += [
            "-c:a",
            options.audio_codec,
            "-b:a",
            options.audio_bitrate,
            "-t",
            f"{audio_duration:.3f}",
            "-movflags",
            "+faststart",
            str(output_path),
        ]
        self._run_ffmpeg(args, "footage mux", audio_duration)
        return output_path, len(plan)

    def _normalize_clip(self, entry: ConcatEntry, target: Path, options: ProcessingOptions) -> None:
        width, height = options.width, options.height
        video_filter = (
            f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:color=black,"
            f"fps={options.fps},setsar=1"
        )
        args = [
            self.settings.ffmpeg_binary,
            "-y",
            "-i",
            str(entry.path),
            "-t",
            f"{entry.duration:.3f}",
            "-vf",
            video_filter,
            "-an",
            *encoder_args(options),
            str(target),
        ]
        self._run_ffmpeg(args, f"normalize {entry.path.name}", entry.duration)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _run_ffmpeg(self, args: list[str], label: str, total_seconds: Optional[float]) -> None:
        # Progress is streamed on stdout; -nostats keeps stderr for diagnostics
        full_args = args[:1] + ["-hide_banner", "-nostats", "-progress", "pipe:1"] + args[1:]
        progress = ThrottledProgressLogger(
            self.logger, label, self.settings.progress_log_interval_seconds, total_seconds
        )
        try:
            result = self.executor.run(
                full_args, timeout=self.settings.composition_timeout_seconds, on_output=progress
            )
        except CommandTimeout as e:
            raise CompositionError(f"ffmpeg {label} timed out after {e.timeout:.0f}s", diagnostics=e.stderr or None) from e
        except CommandNotFound as e:
            raise CompositionError(f"ffmpeg is not installed: {e}") from e

        if not result.ok:
            raise CompositionError(
                f"ffmpeg {label} failed with exit code {result.exit_code}",
                diagnostics=result.stderr.strip()[-4000:] or None,
            )
