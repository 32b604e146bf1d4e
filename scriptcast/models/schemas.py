"""Pydantic models and schemas for the media-assembly pipeline."""

from enum import Enum
from pathlib import Path
from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ============================================================================
# Enums
# ============================================================================


class SegmentKind(str, Enum):
    """Kind of audio segment produced by the speech orchestrator."""

    AUDIO = "audio"
    SILENCE = "silence"


class QualityTier(str, Enum):
    """Encoder quality tier."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CompositionMode(str, Enum):
    """How the final video's visuals are produced."""

    OVERLAY = "overlay"
    FOOTAGE = "footage"


class OrchestratorState(str, Enum):
    """Lifecycle of a speech orchestration job."""

    PENDING = "pending"
    BATCHING = "batching"
    PARTIALLY_FAILED = "partially_failed"
    FINALIZING = "finalizing"
    DONE = "done"


# ============================================================================
# Script Models
# ============================================================================


class ScriptSection(BaseModel):
    """A titled block of narration text with an ordering key."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., description="Section title")
    content: str = Field(..., description="Narration text")
    order_index: int = Field(
        ...,
        validation_alias=AliasChoices("order_index", "orderIndex"),
        description="Sort key for every downstream stage",
    )


# ============================================================================
# Audio Models
# ============================================================================


class AudioSegment(BaseModel):
    """A synthesized or silent stretch of audio attributed to a section."""

    buffer: bytes = Field(..., description="Container-wrapped or raw PCM audio bytes")
    section_index: float = Field(
        ..., description="Section order index; pauses use a half-integer offset (2.5 follows section 2)"
    )
    section_title: str = Field(..., description="Title of the owning section")
    kind: SegmentKind = Field(default=SegmentKind.AUDIO, description="Audio or silence")
    is_placeholder: bool = Field(
        default=False, description="True when the section failed synthesis and was replaced by silence"
    )
    duration_seconds: Optional[float] = Field(default=None, description="Duration if known")


class PcmFormat(BaseModel):
    """Sample format of a PCM payload."""

    model_config = ConfigDict(frozen=True)

    sample_rate: int = Field(default=24000, description="Samples per second")
    channels: int = Field(default=1, description="Channel count")
    bits_per_sample: int = Field(default=16, description="Bits per sample")

    @property
    def block_align(self) -> int:
        return self.channels * self.bits_per_sample // 8

    @property
    def byte_rate(self) -> int:
        return self.sample_rate * self.block_align


class VoiceOptions(BaseModel):
    """Per-call synthesis options."""

    model_config = ConfigDict(frozen=True)

    voice_reference_paths: tuple[str, ...] = Field(
        default=(), description="Reference recordings used for voice cloning"
    )
    language: str = Field(default="en", description="Language code")
    model_name: Optional[str] = Field(default=None, description="Explicit model; chosen automatically when unset")
    use_acceleration: bool = Field(default=True, description="Allow GPU acceleration")
    kokoro_voice: Optional[str] = Field(default=None, description="Kokoro voice override")
    speaking_rate: float = Field(default=1.0, description="Kokoro speaking rate")

    def conservative(self, default_model: str) -> "VoiceOptions":
        """Return the retry variant: no voice reference, reliable model, no acceleration."""
        return self.model_copy(
            update={"voice_reference_paths": (), "model_name": default_model, "use_acceleration": False}
        )


class SpeechOptions(BaseModel):
    """Job-level speech orchestration options."""

    voice: VoiceOptions = Field(default_factory=VoiceOptions, description="Synthesis options")
    add_pause_between_sections: bool = Field(default=True, description="Insert pauses between sections")
    pause_duration: float = Field(default=0.5, description="Pause length in seconds")
    batch_size: int = Field(default=4, ge=1, description="Sections synthesized concurrently")


class EngineCapabilities(BaseModel):
    """Immutable snapshot of what the synthesis environment supports."""

    model_config = ConfigDict(frozen=True)

    accelerated: bool = Field(default=False, description="GPU acceleration available and enabled")
    device_name: Optional[str] = Field(default=None, description="Accelerator device name")
    high_end_device: bool = Field(default=False, description="High-end accelerator detected")
    device_memory_gb: float = Field(default=0.0, description="Accelerator memory in GB")
    available_models: tuple[str, ...] = Field(default=(), description="Installed synthesis models")

    def demoted(self) -> "EngineCapabilities":
        """Return a copy with acceleration disabled. Demotion is one-way."""
        if not self.accelerated:
            return self
        return self.model_copy(update={"accelerated": False})

    def merge(self, other: "EngineCapabilities") -> "EngineCapabilities":
        """Combine two snapshots, keeping any demotion either one observed."""
        if self.accelerated and not other.accelerated:
            return self.demoted()
        return self

    def has_model(self, fragment: str) -> bool:
        return any(fragment in model for model in self.available_models)

    @staticmethod
    def supports_voice_cloning(model_name: str) -> bool:
        name = model_name.lower()
        return "xtts" in name or "tortoise" in name

    @staticmethod
    def supports_multilanguage(model_name: str) -> bool:
        name = model_name.lower()
        return "xtts" in name or "multilingual" in name

    @staticmethod
    def is_multi_speaker(model_name: str) -> bool:
        name = model_name.lower()
        return any(marker in name for marker in ("vctk", "multi-dataset", "multispeaker", "your_tts"))


class SynthesisResult(BaseModel):
    """Raw output of one synthesis call and the capabilities in effect afterwards."""

    audio: bytes = Field(..., description="Container-wrapped audio")
    capabilities: EngineCapabilities = Field(..., description="Possibly demoted capability snapshot")
    model_name: str = Field(..., description="Model that produced the audio")


class SynthesisSuccess(BaseModel):
    """Tagged outcome: a section synthesized successfully."""

    ok: bool = True
    section: ScriptSection
    result: SynthesisResult


class SynthesisFailure(BaseModel):
    """Tagged outcome: a section failed synthesis."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    ok: bool = False
    section: ScriptSection
    error: Exception


SynthesisOutcome = Union[SynthesisSuccess, SynthesisFailure]


class SpeechResult(BaseModel):
    """Output of the speech orchestrator."""

    segments: list[AudioSegment] = Field(default_factory=list, description="Sorted by section_index")
    capabilities: EngineCapabilities = Field(..., description="Merged capability snapshot")
    placeholder_count: int = Field(default=0, description="Sections replaced by silence")
    pcm_format: PcmFormat = Field(default_factory=PcmFormat, description="Format used for silence")
    states: list[OrchestratorState] = Field(default_factory=list, description="State transitions")


# ============================================================================
# Subtitle Models
# ============================================================================


class SubtitleSegment(BaseModel):
    """A timed block of on-screen text."""

    text: str = Field(..., description="Subtitle text")
    start_time: float = Field(..., ge=0.0, description="Start in seconds")
    end_time: float = Field(..., ge=0.0, description="End in seconds")
    section_title: str = Field(..., description="Owning section title")
    index: int = Field(..., description="Position in the subtitle track")

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


# ============================================================================
# Footage Models
# ============================================================================


class FootageVideoFile(BaseModel):
    """One encoded variant of a stock video."""

    id: Optional[int] = Field(default=None, description="Variant id")
    quality: Optional[str] = Field(default=None, description="Declared quality label (hd, sd, uhd)")
    file_type: str = Field(default="video/mp4", description="MIME type")
    width: Optional[int] = Field(default=None, description="Width in pixels")
    height: Optional[int] = Field(default=None, description="Height in pixels")
    fps: Optional[float] = Field(default=None, description="Frame rate")
    link: str = Field(..., description="Download URL")

    @property
    def is_mp4(self) -> bool:
        return "mp4" in (self.file_type or "").lower()


class FootageVideo(BaseModel):
    """A stock video search hit with its encoded variants."""

    id: int = Field(..., description="Provider video id")
    width: int = Field(default=0, description="Source width")
    height: int = Field(default=0, description="Source height")
    duration: float = Field(..., description="Duration in seconds")
    url: Optional[str] = Field(default=None, description="Provider page URL")
    video_files: list[FootageVideoFile] = Field(default_factory=list, description="Encoded variants")


class FootageSearchParams(BaseModel):
    """Stock-footage search request."""

    query: str = Field(..., description="Search query")
    orientation: str = Field(default="landscape", description="landscape, portrait or square")
    size: Optional[str] = Field(default="medium", description="Size tier (omitted when None)")
    page: int = Field(default=1, ge=1, description="Result page")
    per_page: int = Field(default=20, ge=1, le=80, description="Results per page")
    locale: Optional[str] = Field(default=None, description="Search locale")


class FootageSearchPage(BaseModel):
    """One page of stock-footage search results."""

    page: int = Field(default=1, description="Result page")
    per_page: int = Field(default=0, description="Results per page")
    total_results: int = Field(default=0, description="Total hits for the query")
    videos: list[FootageVideo] = Field(default_factory=list, description="Hits")


class SelectedClip(BaseModel):
    """A stock video chosen for the final cut, reduced to its best variant."""

    id: int = Field(..., description="Provider video id")
    url: str = Field(..., description="Download URL of the chosen variant")
    duration: float = Field(..., description="Declared duration in seconds")
    quality: str = Field(default="unknown", description="Declared quality label of the chosen variant")
    width: int = Field(default=0, description="Variant width")
    height: int = Field(default=0, description="Variant height")
    fps: float = Field(default=0.0, description="Variant frame rate")
    tags: set[str] = Field(default_factory=set, description="Keywords that found this clip")
    score: float = Field(default=0.0, description="Selection score")


class PreparedClip(BaseModel):
    """A downloaded clip with its probed duration."""

    clip: SelectedClip = Field(..., description="Selected clip")
    path: Path = Field(..., description="Local file")
    actual_duration: float = Field(..., description="Probed duration in seconds")


class ConcatEntry(BaseModel):
    """One clip's contribution to the concatenated footage track."""

    path: Path = Field(..., description="Local clip file")
    duration: float = Field(..., description="Seconds taken from the start of the clip")


# ============================================================================
# Processing Options
# ============================================================================


class ProcessingOptions(BaseModel):
    """Value object with every composition parameter for one job."""

    model_config = ConfigDict(frozen=True)

    target_duration: float = Field(default=0.0, ge=0.0, description="Target video duration in seconds")
    width: int = Field(default=1920, description="Output width")
    height: int = Field(default=1080, description="Output height")
    fps: int = Field(default=30, description="Output frame rate")
    quality: QualityTier = Field(default=QualityTier.MEDIUM, description="Encoder quality tier")
    background_color: str = Field(default="black", description="Overlay-mode background")
    font_size: int = Field(default=16, description="Overlay-mode font size")
    font_color: str = Field(default="white", description="Overlay-mode font color")
    overlay_text: Optional[str] = Field(default="AUDIO", description="Overlay-mode text")
    overlay_image: Optional[Path] = Field(default=None, description="Overlay-mode centered image")
    video_codec: str = Field(default="libx264", description="Video codec")
    audio_codec: str = Field(default="aac", description="Audio codec")
    audio_bitrate: str = Field(default="128k", description="Audio bitrate")

    @classmethod
    def for_mode(cls, mode: CompositionMode, settings, **overrides) -> "ProcessingOptions":
        """Build options from settings for a composition mode."""
        if mode == CompositionMode.OVERLAY:
            base = {
                "width": settings.overlay_width,
                "height": settings.overlay_height,
                "fps": settings.overlay_fps,
            }
        else:
            base = {
                "width": settings.video_width,
                "height": settings.video_height,
                "fps": settings.video_fps,
            }
        base.update(
            {
                "quality": QualityTier(settings.video_quality),
                "background_color": settings.overlay_background_color,
                "font_size": settings.overlay_font_size,
                "font_color": settings.overlay_font_color,
                "overlay_text": settings.overlay_text,
            }
        )
        base.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**base)


# ============================================================================
# Job Models
# ============================================================================


class AssemblyJob(BaseModel):
    """Input for one media-assembly run."""

    job_id: str = Field(..., description="Job identifier")
    title: str = Field(default="Untitled", description="Video title")
    sections: list[ScriptSection] = Field(..., min_length=1, description="Ordered script sections")
    target_duration: float = Field(default=0.0, ge=0.0, description="Target duration in seconds")
    mode: CompositionMode = Field(default=CompositionMode.FOOTAGE, description="Composition mode")
    speech: SpeechOptions = Field(default_factory=SpeechOptions, description="Speech options")
    quality: Optional[QualityTier] = Field(default=None, description="Override quality tier")
    overlay_text: Optional[str] = Field(default=None, description="Override overlay text")
    overlay_image: Optional[str] = Field(default=None, description="Overlay image path or local URL")


class AudioResult(BaseModel):
    """Combined audio track with duration metadata."""

    audio: bytes = Field(..., description="Combined audio bytes")
    duration_seconds: float = Field(..., description="Measured duration")
    segment_count: int = Field(..., description="Segments combined")
    placeholder_count: int = Field(default=0, description="Sections replaced by silence")
    capabilities: EngineCapabilities = Field(..., description="Capabilities after synthesis")


class VideoResult(BaseModel):
    """Finished video with duration metadata."""

    video: bytes = Field(..., description="Encoded video bytes")
    duration_seconds: float = Field(..., description="Probed duration")
    mode: CompositionMode = Field(..., description="Composition mode used")
    clip_count: int = Field(default=0, description="Footage clips used")


class AssemblyResult(BaseModel):
    """Everything produced by a job."""

    job_id: str
    audio: AudioResult
    video: VideoResult
    subtitles: list[SubtitleSegment] = Field(default_factory=list)
    audio_path: Optional[Path] = None
    video_path: Optional[Path] = None
    subtitle_path: Optional[Path] = None
    thumbnail_path: Optional[Path] = None
