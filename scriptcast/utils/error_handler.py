"""Error Handler - user-facing error messages and per-stage fallback suggestions."""

from typing import Optional

from scriptcast.core.exceptions import PipelineError


def format_error_message(
    operation: str,
    error: Exception,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format a user-friendly error message.

    Args:
        operation: What operation was being performed (e.g., "Synthesizing section audio")
        error: The exception that occurred
        context: Additional context (e.g., {"job_id": "job_123", "section": "Intro"})
        suggestion: Optional suggestion for how to fix the issue

    Returns:
        Formatted error message
    """
    error_type = type(error).__name__
    error_msg = error.message if isinstance(error, PipelineError) else str(error)

    context_str = ""
    if context:
        context_parts = [f"{k}={v}" for k, v in context.items()]
        context_str = f" ({', '.join(context_parts)})"

    message = f"❌ {operation} failed{context_str}\n"
    message += f"   Error: {error_type}: {error_msg}"

    if isinstance(error, PipelineError) and error.diagnostics:
        tail = error.diagnostics.strip().splitlines()[-5:]
        message += "\n   Diagnostics:\n" + "\n".join(f"     {line}" for line in tail)

    if suggestion:
        message += f"\n   💡 Suggestion: {suggestion}"

    return message


def get_fallback_suggestion(stage: str, error: Exception) -> Optional[str]:
    """
    Get a suggestion for how to handle a stage failure.

    Args:
        stage: Pipeline stage (synthesis, assembly, footage_search, download, composition, job)
        error: The exception

    Returns:
        Suggestion string or None
    """
    error_msg = str(error).lower()

    if stage == "synthesis":
        if "not installed" in error_msg or "not found" in error_msg:
            return "Install the speech engine (pip install TTS) or set TTS_ENGINE=kokoro."
        elif "cuda" in error_msg or "memory" in error_msg:
            return "GPU synthesis failed. Set TTS_USE_ACCELERATION=false to run on CPU."
        elif "timed out" in error_msg:
            return "Synthesis timed out. Shorten sections or raise TTS_TIMEOUT_SECONDS."
        else:
            return "Every section failed synthesis. Check the engine installation and model name."

    elif stage == "assembly":
        return "An audio segment was malformed. Re-run synthesis for the affected section."

    elif stage == "footage_search":
        if "api key" in error_msg or "not configured" in error_msg:
            return "Check your PEXELS_API_KEY in .env file, or use overlay mode."
        elif "429" in error_msg or "rate" in error_msg:
            return "Pexels rate limit exceeded. Wait and try again, or use overlay mode."
        else:
            return "Footage search failed. Overlay mode does not need stock footage."

    elif stage == "download":
        if "network" in error_msg or "timeout" in error_msg:
            return "Network error. Check your internet connection and retry."
        else:
            return "No clip could be downloaded. Retry, or use overlay mode."

    elif stage == "composition":
        if "not installed" in error_msg:
            return "Install ffmpeg and make sure it is on PATH (or set FFMPEG_BINARY)."
        else:
            return "ffmpeg failed. See the diagnostics above for the encoder's error output."

    elif stage == "job":
        return "The job exceeded its deadline. Raise JOB_TIMEOUT_SECONDS or reduce the script length."

    return None
