"""Exception taxonomy for the media-assembly pipeline."""

from typing import Optional


class PipelineError(Exception):
    """Base class for every failure raised by a pipeline stage."""

    stage = "pipeline"

    def __init__(self, message: str, diagnostics: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.diagnostics = diagnostics

    def __str__(self) -> str:
        if self.diagnostics:
            return f"{self.message}\n{self.diagnostics}"
        return self.message


class SynthesisError(PipelineError):
    """A speech synthesis call failed or produced unusable output."""

    stage = "synthesis"


class SynthesisTimeout(SynthesisError):
    """A speech synthesis call exceeded its hard timeout."""


class AssemblyError(PipelineError):
    """Audio buffers could not be stitched into a single track."""

    stage = "assembly"


class FootageSearchError(PipelineError):
    """A stock-footage search request failed."""

    stage = "footage_search"


class DownloadError(PipelineError):
    """A clip could not be downloaded or probed."""

    stage = "download"


class CompositionError(PipelineError):
    """The media compositor exited unsuccessfully. ``diagnostics`` holds its stderr."""

    stage = "composition"


class PipelineTimeout(PipelineError):
    """The job-level deadline expired."""

    stage = "job"


class CommandError(Exception):
    """An external command could not be run."""


class CommandNotFound(CommandError):
    """The external binary does not exist on this system."""


class CommandTimeout(CommandError):
    """An external command exceeded its timeout and was killed."""

    def __init__(self, args: list[str], timeout: float, stderr: str = ""):
        super().__init__(f"Command timed out after {timeout:.1f}s: {args[0] if args else '?'}")
        self.command = args
        self.timeout = timeout
        self.stderr = stderr
