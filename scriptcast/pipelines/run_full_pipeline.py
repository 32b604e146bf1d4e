"""Full pipeline orchestrator - script sections → narrated audio → finished video."""

import argparse
import json
import sys
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Optional

from scriptcast.core.config import Settings, settings
from scriptcast.core.exceptions import DownloadError, PipelineError, SynthesisError
from scriptcast.core.logging_config import get_logger, setup_logging
from scriptcast.models.schemas import (
    AssemblyJob,
    AssemblyResult,
    AudioResult,
    CompositionMode,
    EngineCapabilities,
    ProcessingOptions,
    QualityTier,
    ScriptSection,
    SegmentKind,
    SpeechOptions,
    VideoResult,
    VoiceOptions,
)
from scriptcast.services import wav_container
from scriptcast.services.audio_assembler import AudioAssembler
from scriptcast.services.clip_downloader import ClipDownloader
from scriptcast.services.command_executor import CommandExecutor, SubprocessExecutor
from scriptcast.services.footage_client import PexelsClient
from scriptcast.services.footage_selector import FootageSelector
from scriptcast.services.speech_orchestrator import SpeechOrchestrator
from scriptcast.services.subtitle_timing import SubtitleTimingEngine
from scriptcast.services.thumbnail_generator import ThumbnailGenerator
from scriptcast.services.tts_engines import create_engine, probe_capabilities
from scriptcast.services.video_compositor import VideoCompositor
from scriptcast.utils.error_handler import format_error_message, get_fallback_suggestion
from scriptcast.utils.io_utils import (
    JobDeadline,
    create_run_output_dir,
    job_temp_dir,
    resolve_asset_path,
    slugify,
)

ExecutorFactory = Callable[[Optional[JobDeadline]], CommandExecutor]


class MediaAssemblyPipeline:
    """Coordinates speech synthesis, audio assembly, subtitle timing and video composition."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        executor_factory: Optional[ExecutorFactory] = None,
        footage_client: Optional[PexelsClient] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Application settings
            logger: Logger instance
            executor_factory: Builds a command executor bound to a job deadline
            footage_client: Stock-footage client (created lazily if omitted)
        """
        self.settings = settings
        self.logger = logger
        self.executor_factory = executor_factory or (lambda deadline: SubprocessExecutor(logger, deadline))
        self._footage_client = footage_client
        self.capabilities: Optional[EngineCapabilities] = None
        self.assembler = AudioAssembler(settings, logger)
        self.subtitle_engine = SubtitleTimingEngine(settings, logger)
        self.thumbnail_generator = ThumbnailGenerator(settings, logger)

    @property
    def footage_client(self) -> PexelsClient:
        if self._footage_client is None:
            self._footage_client = PexelsClient(self.settings, self.logger)
        return self._footage_client

    def ensure_capabilities(self, executor: CommandExecutor) -> EngineCapabilities:
        """Probe the synthesis environment once per pipeline instance."""
        if self.capabilities is None:
            self.capabilities = probe_capabilities(self.settings, executor, self.logger)
        return self.capabilities

    def generate_audio(
        self,
        sections: list[ScriptSection],
        speech_options: SpeechOptions,
        work_dir: Path,
        deadline: Optional[JobDeadline] = None,
        job_id: Optional[str] = None,
    ) -> AudioResult:
        """
        Synthesize and combine the narration track.

        Args:
            sections: Script sections
            speech_options: Speech options
            work_dir: Job-scoped working directory
            deadline: Optional job deadline
            job_id: Optional job ID for logging context

        Returns:
            AudioResult with the combined buffer and its measured duration

        Raises:
            SynthesisError: If no section produced usable audio
            PipelineTimeout: If the job deadline expires
        """
        executor = self.executor_factory(deadline)
        capabilities = self.ensure_capabilities(executor)
        engine = create_engine(self.settings, executor, self.logger)
        orchestrator = SpeechOrchestrator(self.settings, self.logger, engine)

        speech = orchestrator.synthesize_sections(sections, speech_options, capabilities, work_dir, job_id=job_id)
        self.capabilities = self.capabilities.merge(speech.capabilities)

        spoken = [segment for segment in speech.segments if segment.kind == SegmentKind.AUDIO]
        if not spoken:
            raise SynthesisError(f"No usable audio: all {len(sections)} section(s) failed synthesis")

        combined = self.assembler.combine(speech.segments)
        if not wav_container.is_container(combined):
            combined = wav_container.wrap_pcm(combined, speech.pcm_format)
        duration = self.assembler.measure_duration(combined, speech.pcm_format)

        if speech.placeholder_count:
            self.logger.warning(f"⚠️ Audio contains {speech.placeholder_count} placeholder section(s)")
        self.logger.info(f"🔊 Audio track: {duration:.2f}s from {len(speech.segments)} segments")
        return AudioResult(
            audio=combined,
            duration_seconds=duration,
            segment_count=len(speech.segments),
            placeholder_count=speech.placeholder_count,
            capabilities=self.capabilities,
        )

    def generate_video(
        self,
        sections: list[ScriptSection],
        audio: AudioResult,
        options: ProcessingOptions,
        mode: CompositionMode,
        work_dir: Path,
        deadline: Optional[JobDeadline] = None,
        job_id: Optional[str] = None,
    ) -> VideoResult:
        """
        Compose the final video for an audio track.

        Args:
            sections: Script sections (keywords for footage mode)
            audio: Combined audio track
            options: Processing options
            mode: Overlay or footage mode
            work_dir: Job-scoped working directory
            deadline: Optional job deadline
            job_id: Optional job ID for logging context

        Returns:
            VideoResult with the encoded video

        Raises:
            DownloadError: If footage mode ends up with no usable clip
            CompositionError: If ffmpeg fails
            PipelineTimeout: If the job deadline expires
        """
        executor = self.executor_factory(deadline)
        compositor = VideoCompositor(self.settings, self.logger, executor)

        audio_path = work_dir / "narration.wav"
        audio_path.write_bytes(audio.audio)
        output_path = work_dir / "video.mp4"
        clip_count = 0

        if mode == CompositionMode.OVERLAY:
            compositor.render_overlay(audio_path, output_path, options, audio.duration_seconds)
        else:
            target = audio.duration_seconds or options.target_duration
            selector = FootageSelector(self.settings, self.logger, self.footage_client)
            clips = selector.select_clips(sections, target)
            if deadline:
                deadline.check("clip download")
            downloader = ClipDownloader(self.settings, self.logger, self.footage_client, compositor.probe_duration)
            prepared = downloader.prepare_clips(clips, work_dir, target_duration=target, job_id=job_id)
            if not prepared:
                raise DownloadError(f"No usable footage: 0 of {len(clips)} selected clip(s) could be prepared")
            if deadline:
                deadline.check("composition")
            _, clip_count = compositor.render_footage(
                prepared, audio_path, output_path, options, audio.duration_seconds, work_dir
            )

        duration = compositor.probe_duration(output_path)
        self.logger.info(f"✅ Video rendered: {duration:.2f}s ({mode.value} mode)")
        return VideoResult(
            video=output_path.read_bytes(),
            duration_seconds=duration,
            mode=mode,
            clip_count=clip_count,
        )

    def run(self, job: AssemblyJob, output_dir: Optional[Path] = None) -> AssemblyResult:
        """
        Run a complete assembly job.

        The job-scoped working directory is removed whether the job succeeds or fails.

        Args:
            job: Job description
            output_dir: If given, artifacts (audio, video, subtitles, title card) are written here

        Returns:
            AssemblyResult

        Raises:
            PipelineError: On any fatal stage failure
        """
        deadline = JobDeadline(self.settings.job_timeout_seconds)
        start_time = time.time()
        self.logger.info(f"🚀 Job {job.job_id}: {len(job.sections)} sections, mode={job.mode.value}")

        with job_temp_dir(job.job_id) as work_dir:
            audio = self.generate_audio(job.sections, job.speech, work_dir, deadline, job.job_id)

            deadline.check("subtitle timing")
            subtitles = self.subtitle_engine.compute_timing(job.sections, audio.duration_seconds)

            overlay_image = None
            if job.overlay_image:
                overlay_image = Path(
                    resolve_asset_path(
                        job.overlay_image, self.settings.local_files_marker, self.settings.local_storage_root
                    )
                )
            options = ProcessingOptions.for_mode(
                job.mode,
                self.settings,
                target_duration=job.target_duration or audio.duration_seconds,
                quality=job.quality,
                overlay_text=job.overlay_text,
                overlay_image=overlay_image,
            )

            deadline.check("video composition")
            video = self.generate_video(job.sections, audio, options, job.mode, work_dir, deadline, job.job_id)

        result = AssemblyResult(job_id=job.job_id, audio=audio, video=video, subtitles=subtitles)
        if output_dir is not None:
            self._write_artifacts(job, result, output_dir)

        self.logger.info(f"🏁 Job {job.job_id} finished in {time.time() - start_time:.2f}s")
        return result

    def _write_artifacts(self, job: AssemblyJob, result: AssemblyResult, output_dir: Path) -> None:
        output_dir.mkdir(parents=True, exist_ok=True)
        result.audio_path = output_dir / "narration.wav"
        result.audio_path.write_bytes(result.audio.audio)
        result.video_path = output_dir / "video.mp4"
        result.video_path.write_bytes(result.video.video)
        if result.subtitles:
            result.subtitle_path = self.subtitle_engine.write_srt(result.subtitles, output_dir / "subtitles.srt")
        result.thumbnail_path = self.thumbnail_generator.generate(job.title, output_dir / "thumbnail.png")


def load_job_file(path: Path) -> dict:
    """
    Load a job description from JSON.

    Accepts either a list of sections or an object with ``sections`` and optional
    ``title`` / ``targetDuration``.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return {"sections": data}
    if not isinstance(data, dict) or "sections" not in data:
        raise ValueError(f"{path} must contain a list of sections or an object with 'sections'")
    return data


def main():
    """Main entrypoint for the media-assembly pipeline."""
    parser = argparse.ArgumentParser(
        description="ScriptCast - narrated video assembly from script sections",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--script", type=str, required=True, help="JSON file with script sections")
    parser.add_argument(
        "--mode",
        type=str,
        default=CompositionMode.FOOTAGE.value,
        choices=[mode.value for mode in CompositionMode],
        help="Composition mode: footage (stock clips) or overlay (solid background with text)",
    )
    parser.add_argument(
        "--quality",
        type=str,
        default=None,
        choices=[tier.value for tier in QualityTier],
        help="Encoder quality tier (default: VIDEO_QUALITY setting)",
    )
    parser.add_argument("--title", type=str, default=None, help="Video title (used for the title card)")
    parser.add_argument("--target-duration", type=float, default=None, help="Target duration in seconds")
    parser.add_argument("--voice-ref", action="append", default=[], help="Voice reference WAV (repeatable)")
    parser.add_argument("--language", type=str, default=None, help="Language code for multilingual models")
    parser.add_argument("--no-pause", action="store_true", help="Do not insert pauses between sections")
    parser.add_argument("--overlay-text", type=str, default=None, help="Overlay-mode text")
    parser.add_argument("--overlay-image", type=str, default=None, help="Overlay-mode image path or local URL")
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Base directory for outputs (default: OUTPUT_DIR setting)",
    )
    parser.add_argument("--job-id", type=str, default=None, help="Job identifier (default: random)")

    args = parser.parse_args()

    setup_logging(
        log_level=settings.log_level,
        log_file=Path(settings.log_file) if settings.log_file else None,
        serialize=settings.log_json,
    )
    job_id = args.job_id or f"job_{uuid.uuid4().hex[:8]}"
    logger = get_logger(__name__, job_id=job_id)

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} v{settings.app_version}")
    logger.info("=" * 60)

    try:
        data = load_job_file(Path(args.script))
        title = args.title or data.get("title") or "Untitled"
        speech = SpeechOptions(
            voice=VoiceOptions(
                voice_reference_paths=tuple(args.voice_ref),
                language=args.language or settings.tts_language,
                use_acceleration=settings.tts_use_acceleration,
            ),
            add_pause_between_sections=settings.add_pause_between_sections and not args.no_pause,
            pause_duration=settings.pause_duration_seconds,
            batch_size=settings.tts_batch_size,
        )
        job = AssemblyJob(
            job_id=job_id,
            title=title,
            sections=[ScriptSection.model_validate(section) for section in data["sections"]],
            target_duration=args.target_duration or data.get("targetDuration") or 0.0,
            mode=CompositionMode(args.mode),
            speech=speech,
            quality=QualityTier(args.quality) if args.quality else None,
            overlay_text=args.overlay_text,
            overlay_image=args.overlay_image,
        )

        output_dir = create_run_output_dir(args.output_dir or settings.output_dir, slugify(title))
        pipeline = MediaAssemblyPipeline(settings, logger)
        result = pipeline.run(job, output_dir=output_dir)

        logger.info("=" * 60)
        logger.info("PIPELINE COMPLETE!")
        logger.info("=" * 60)
        logger.info(f"Audio: {result.audio_path} ({result.audio.duration_seconds:.2f}s)")
        logger.info(f"Video: {result.video_path} ({result.video.duration_seconds:.2f}s)")
        if result.subtitle_path:
            logger.info(f"Subtitles: {result.subtitle_path}")
        if result.thumbnail_path:
            logger.info(f"Title card: {result.thumbnail_path}")
        if result.audio.placeholder_count:
            logger.warning(f"{result.audio.placeholder_count} section(s) were replaced by silence")
        return 0

    except KeyboardInterrupt:
        logger.warning("Pipeline interrupted by user")
        return 1
    except PipelineError as e:
        logger.error(
            format_error_message(
                "Media assembly",
                e,
                context={"job_id": job_id, "stage": e.stage},
                suggestion=get_fallback_suggestion(e.stage, e),
            )
        )
        return 1
    except Exception as e:
        logger.exception(f"Pipeline failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
