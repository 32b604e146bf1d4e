"""Application configuration using pydantic-settings."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="ScriptCast Media Assembly", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")
    log_json: bool = Field(default=False, description="Write the log file as JSON lines")
    output_dir: str = Field(default="outputs", description="Base directory for run outputs")

    # ========================================================================
    # Speech Synthesis Engine Settings
    # ========================================================================
    tts_engine: str = Field(
        default="coqui",
        description="Speech synthesis engine: 'coqui' (tts CLI) or 'kokoro' (generated python script)",
    )
    tts_binary: str = Field(default="tts", description="Coqui TTS command-line binary")
    tts_python: str = Field(
        default="python3",
        description="Python interpreter used for capability probing and the Kokoro engine",
    )
    tts_timeout_seconds: float = Field(
        default=300.0, description="Hard timeout per synthesis call in seconds (default: 300)"
    )
    tts_probe_timeout_seconds: float = Field(
        default=5.0, description="Timeout for the acceleration probe in seconds (default: 5)"
    )
    tts_list_models_timeout_seconds: float = Field(
        default=30.0, description="Timeout for listing installed synthesis models (default: 30)"
    )
    tts_default_model: str = Field(
        default="tts_models/en/ljspeech/vits",
        description="Reliable single-speaker model used by default and for conservative retries",
    )
    tts_voice_cloning_model: str = Field(
        default="tts_models/multilingual/multi-dataset/xtts_v2",
        description="Model preferred when a voice reference is supplied",
    )
    tts_language: str = Field(default="en", description="Default language code for multilingual models")
    tts_use_acceleration: bool = Field(
        default=True, description="Use GPU acceleration when the capability probe reports it"
    )
    kokoro_voice: str = Field(default="af_heart", description="Kokoro voice name")
    kokoro_lang_code: str = Field(default="a", description="Kokoro pipeline language code")
    kokoro_sample_rate: int = Field(default=22050, description="Kokoro output sample rate")

    # ========================================================================
    # Speech Orchestration Settings
    # ========================================================================
    tts_batch_size: int = Field(
        default=4, description="Number of sections synthesized concurrently per batch (default: 4)"
    )
    add_pause_between_sections: bool = Field(
        default=True, description="Insert a silence segment between consecutive sections"
    )
    pause_duration_seconds: float = Field(
        default=0.5, description="Silence inserted between sections in seconds (default: 0.5)"
    )
    placeholder_duration_seconds: float = Field(
        default=2.0, description="Silence used for a section that failed all attempts (default: 2.0)"
    )
    silence_sample_rate: int = Field(
        default=24000, description="Sample rate for silence when no synthesized audio is available"
    )
    silence_channels: int = Field(default=1, description="Channel count for fallback silence")
    silence_bits_per_sample: int = Field(default=16, description="Bit depth for fallback silence")

    # ========================================================================
    # Stock Footage Settings
    # ========================================================================
    pexels_api_key: Optional[str] = Field(default=None, description="Pexels API key")
    pexels_api_url: str = Field(
        default="https://api.pexels.com/videos/search", description="Pexels video search endpoint"
    )
    pexels_rate_limit: int = Field(default=200, description="Pexels API calls per hour (default: 200)")
    pexels_request_timeout_seconds: float = Field(default=30.0, description="Search request timeout")
    footage_download_timeout_seconds: float = Field(
        default=120.0, description="Timeout for a single clip download in seconds"
    )
    footage_buffer_factor: float = Field(
        default=1.15,
        description="Gathered footage must cover target duration times this factor (default: 1.15)",
    )
    footage_min_clip_seconds: float = Field(default=3.0, description="Minimum accepted clip duration")
    footage_max_clip_seconds: float = Field(default=45.0, description="Maximum accepted clip duration")
    footage_keywords_per_section: int = Field(default=6, description="Keywords searched per section")
    footage_clips_per_keyword: int = Field(default=4, description="Clips taken per keyword search")
    footage_per_page: int = Field(default=20, description="Results requested per keyword search")
    footage_size: str = Field(default="medium", description="Pexels size tier for searches")
    footage_orientation: str = Field(default="landscape", description="Pexels orientation for searches")
    footage_generic_terms: list[str] = Field(
        default=["business", "technology", "nature", "lifestyle", "modern", "abstract", "city", "office"],
        description="Generic search terms used when keyword searches fall short",
    )
    footage_generic_per_page: int = Field(default=15, description="Results per generic search")
    footage_generic_clips_per_term: int = Field(default=5, description="Clips taken per generic term")
    footage_min_coverage_ratio: float = Field(
        default=1.0,
        description="Warn when prepared footage covers less than target duration times this ratio",
    )

    # ========================================================================
    # Composition Settings
    # ========================================================================
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg binary")
    ffprobe_binary: str = Field(default="ffprobe", description="ffprobe binary")
    ffprobe_timeout_seconds: float = Field(default=30.0, description="Timeout for ffprobe calls")
    composition_timeout_seconds: float = Field(
        default=1800.0, description="Timeout for a single ffmpeg composition call"
    )
    video_width: int = Field(default=1920, description="Footage-mode output width (default: 1920)")
    video_height: int = Field(default=1080, description="Footage-mode output height (default: 1080)")
    video_fps: int = Field(default=30, description="Footage-mode frame rate (default: 30)")
    video_quality: str = Field(default="medium", description="Quality tier: low, medium or high")
    overlay_width: int = Field(default=854, description="Overlay-mode output width (default: 854)")
    overlay_height: int = Field(default=480, description="Overlay-mode output height (default: 480)")
    overlay_fps: int = Field(default=6, description="Overlay-mode frame rate (default: 6)")
    overlay_background_color: str = Field(default="black", description="Overlay-mode background color")
    overlay_font_size: int = Field(default=16, description="Overlay-mode font size")
    overlay_font_color: str = Field(default="white", description="Overlay-mode font color")
    overlay_text: str = Field(default="AUDIO", description="Default overlay text")
    progress_log_interval_seconds: float = Field(
        default=2.0, description="Minimum interval between composition progress log lines"
    )
    min_clip_contribution_seconds: float = Field(
        default=2.0, description="Clips contributing less than this are skipped when concatenating"
    )
    concat_tolerance_seconds: float = Field(
        default=0.5, description="Concatenation stops once within this distance of the target"
    )

    # ========================================================================
    # Subtitle Settings
    # ========================================================================
    subtitle_max_sentences_per_chunk: int = Field(default=2, description="Sentences per subtitle chunk")
    subtitle_words_per_chunk: int = Field(
        default=10, description="Words per chunk when a section has no sentence punctuation"
    )
    subtitle_pause_seconds: float = Field(default=0.3, description="Pause between sections' subtitles")

    # ========================================================================
    # Thumbnail Settings
    # ========================================================================
    thumbnail_enabled: bool = Field(default=True, description="Write a title card next to the video")
    thumbnail_width: int = Field(default=1280, description="Title card width")
    thumbnail_height: int = Field(default=720, description="Title card height")
    thumbnail_background_color: str = Field(default="#22223b", description="Title card background")
    thumbnail_text_color: str = Field(default="#f2e9e4", description="Title card text color")

    # ========================================================================
    # Local Storage & Job Limits
    # ========================================================================
    local_files_marker: str = Field(
        default="/api/local-files/", description="URL prefix that designates locally stored assets"
    )
    local_storage_root: str = Field(
        default="public/uploads", description="Directory local-storage URLs are resolved against"
    )
    job_timeout_seconds: float = Field(
        default=3600.0, description="Overall deadline for a single assembly job in seconds"
    )


# Global settings instance
settings = Settings()
