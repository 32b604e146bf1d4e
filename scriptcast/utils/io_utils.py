"""I/O utility functions for file, directory and deadline handling."""

import re
import shutil
import tempfile
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Union

from scriptcast.core.exceptions import PipelineTimeout


def slugify(text: str) -> str:
    """
    Convert text to a filesystem-safe slug.

    Args:
        text: Input text to slugify.

    Returns:
        Filesystem-safe slug string.
    """
    text = text.lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[-\s]+", "-", text)
    text = text.strip("-")
    if len(text) > 100:
        text = text[:100].rstrip("-")
    return text or "untitled"


def create_run_output_dir(base_dir: str, slug: str) -> Path:
    """
    Create a timestamped output directory for an assembly run.

    Args:
        base_dir: Base directory for outputs (e.g., "outputs").
        slug: Slugified identifier for the run.

    Returns:
        Path to the created directory.
    """
    timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
    output_dir = Path(base_dir) / f"{timestamp}_{slug}"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


@contextmanager
def job_temp_dir(job_id: str, base_dir: Optional[Path] = None) -> Iterator[Path]:
    """
    Create a job-scoped working directory that is removed on exit, whether the job succeeded or not.

    Args:
        job_id: Job identifier used as the directory prefix.
        base_dir: Optional parent directory (defaults to the system temp dir).

    Yields:
        Path to the working directory.
    """
    if base_dir is not None:
        base_dir.mkdir(parents=True, exist_ok=True)
    work_dir = Path(tempfile.mkdtemp(prefix=f"scriptcast_{slugify(job_id)}_", dir=base_dir))
    try:
        yield work_dir
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)


def is_local_asset(url: str, marker: str) -> bool:
    """Return True if the URL addresses locally stored content."""
    return marker in url


def resolve_asset_path(url: str, marker: str, storage_root: Union[str, Path]) -> Union[str, Path]:
    """
    Resolve a local-storage URL to a filesystem path; remote URLs are returned unchanged.

    Args:
        url: Asset URL or path.
        marker: Path marker designating local storage (e.g., "/api/local-files/").
        storage_root: Directory local assets live under.

    Returns:
        Local Path for local-storage URLs, otherwise the original URL.
    """
    if not is_local_asset(url, marker):
        return url
    relative = url.split(marker, 1)[1].split("?", 1)[0].lstrip("/")
    root = Path(storage_root)
    if not root.is_absolute():
        root = Path.cwd() / root
    return root / relative


class JobDeadline:
    """Monotonic job-level deadline shared by every stage of a job."""

    def __init__(self, timeout_seconds: Optional[float]):
        self.timeout_seconds = timeout_seconds
        self.started_at = time.monotonic()
        self.expires_at = None if timeout_seconds is None else self.started_at + timeout_seconds

    def remaining(self) -> Optional[float]:
        """Seconds left, or None for an unbounded job."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0.0

    def clamp(self, timeout: Optional[float]) -> Optional[float]:
        """Return the smaller of ``timeout`` and the remaining job time."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        if timeout is None:
            return remaining
        return min(timeout, remaining)

    def check(self, stage: str) -> None:
        """Raise PipelineTimeout if the deadline has passed."""
        if self.expired():
            raise PipelineTimeout(
                f"Job deadline of {self.timeout_seconds:.0f}s exceeded before {stage}"
            )
