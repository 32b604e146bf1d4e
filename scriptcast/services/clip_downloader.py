"""Clip Downloader - fetches selected clips in parallel and probes their real durations."""

from pathlib import Path
from typing import Any, Callable, Optional

from scriptcast.core.config import Settings
from scriptcast.core.exceptions import DownloadError, PipelineTimeout
from scriptcast.models.schemas import PreparedClip, SelectedClip
from scriptcast.services.footage_client import PexelsClient
from scriptcast.utils.parallel_executor import ParallelExecutor

DurationProbe = Callable[[Path], float]


class ClipDownloader:
    """Downloads clips with one task per clip; failed clips are excluded, never fatal."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        client: PexelsClient,
        probe_duration: DurationProbe,
        parallel_executor: Optional[ParallelExecutor] = None,
    ):
        """
        Initialize clip downloader.

        Args:
            settings: Application settings
            logger: Logger instance
            client: Client used for downloads
            probe_duration: Callable returning a local clip's duration in seconds
            parallel_executor: Executor for download tasks (created if omitted)
        """
        self.settings = settings
        self.logger = logger
        self.client = client
        self.probe_duration = probe_duration
        self.parallel_executor = parallel_executor or ParallelExecutor(settings, logger)

    def prepare_clips(
        self,
        clips: list[SelectedClip],
        work_dir: Path,
        target_duration: float = 0.0,
        job_id: Optional[str] = None,
    ) -> list[PreparedClip]:
        """
        Download and probe every clip concurrently.

        Args:
            clips: Selected clips
            work_dir: Job-scoped working directory
            target_duration: Duration the footage should cover, used for the coverage warning
            job_id: Optional job ID for logging context

        Returns:
            Prepared clips in the input order, excluding failures

        Raises:
            PipelineTimeout: If the job deadline expires during downloads
        """
        if not clips:
            return []

        clip_dir = work_dir / "clips"
        clip_dir.mkdir(parents=True, exist_ok=True)
        tasks = [(lambda clip=clip: self._prepare_one(clip, clip_dir)) for clip in clips]
        names = [f"clip:{clip.id}" for clip in clips]
        self.logger.info(f"⬇️ Downloading {len(clips)} clips")

        results = self.parallel_executor.execute(
            tasks,
            names,
            job_id=job_id,
            max_workers=len(clips),
        )

        prepared: list[PreparedClip] = []
        for clip, (result, error) in zip(clips, results):
            if isinstance(error, PipelineTimeout):
                raise error
            if error is not None:
                self.logger.warning(f"⚠️ Excluding clip {clip.id}: {error}")
                continue
            prepared.append(result)

        total = sum(item.actual_duration for item in prepared)
        coverage_target = target_duration * self.settings.footage_min_coverage_ratio
        if target_duration and total < coverage_target:
            self.logger.warning(
                f"⚠️ Prepared footage covers {total:.1f}s of {target_duration:.1f}s "
                f"({len(prepared)}/{len(clips)} clips usable)"
            )
        else:
            self.logger.info(f"✅ Prepared {len(prepared)}/{len(clips)} clips ({total:.1f}s)")
        return prepared

    def _prepare_one(self, clip: SelectedClip, clip_dir: Path) -> PreparedClip:
        destination = clip_dir / f"clip_{clip.id}.mp4"
        self.client.download(clip.url, destination)
        try:
            duration = self.probe_duration(destination)
        except PipelineTimeout:
            raise
        except Exception as e:
            raise DownloadError(f"Could not probe clip {clip.id}: {e}") from e
        if duration <= 0:
            raise DownloadError(f"Clip {clip.id} has no playable duration")
        return PreparedClip(clip=clip, path=destination, actual_duration=duration)
