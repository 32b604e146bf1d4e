"""Audio Assembler - stitches ordered audio segments into one continuous track."""

from typing import Any, Optional

from scriptcast.core.config import Settings
from scriptcast.core.exceptions import AssemblyError
from scriptcast.models.schemas import AudioSegment, PcmFormat
from scriptcast.services import wav_container


class AudioAssembler:
    """Concatenates container-wrapped and raw PCM segments into a single buffer."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize audio assembler.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def combine(self, segments: list[AudioSegment]) -> bytes:
        """
        Combine segments in the order given.

        The first container keeps its header; later containers contribute only their
        payload and raw buffers are appended as-is. When the first buffer is a
        container its RIFF and data size fields are rewritten for the final length.

        Args:
            segments: Segments already sorted by section_index

        Returns:
            Combined audio bytes (empty for no segments)

        Raises:
            AssemblyError: If a segment is empty or a container has no data chunk
        """
        if not segments:
            return b""

        for segment in segments:
            if not segment.buffer:
                raise AssemblyError(
                    f"Segment {segment.section_index} ({segment.section_title}) has an empty buffer"
                )

        if len(segments) == 1:
            return segments[0].buffer

        parts = []
        retained_format: Optional[PcmFormat] = None
        for position, segment in enumerate(segments):
            buffer = segment.buffer
            if not wav_container.is_container(buffer):
                parts.append(buffer)
                continue

            header = wav_container.parse_header(buffer)
            if position == 0:
                retained_format = header.pcm_format
                parts.append(buffer[: header.payload_offset])
            elif retained_format is not None and header.pcm_format != retained_format:
                self.logger.warning(
                    f"⚠️ Segment '{segment.section_title}' is {self._describe(header.pcm_format)} but the "
                    f"track header is {self._describe(retained_format)}; it will play at the wrong speed"
                )
            # Chunks after the data chunk (LIST, id3) are metadata, not samples
            parts.append(wav_container.payload(buffer, header))

        combined = b"".join(parts)
        if wav_container.is_container(combined):
            combined = wav_container.rewrite_size_fields(combined)

        self.logger.debug(f"Combined {len(segments)} segments into {len(combined)} bytes")
        return combined

    @staticmethod
    def _describe(pcm_format: PcmFormat) -> str:
        return f"{pcm_format.sample_rate}Hz/{pcm_format.channels}ch/{pcm_format.bits_per_sample}bit"

    def measure_duration(self, buffer: bytes, fallback_format: Optional[PcmFormat] = None) -> float:
        """
        Measure the duration of a combined buffer.

        Args:
            buffer: Container or raw PCM bytes
            fallback_format: Format assumed for raw PCM

        Returns:
            Duration in seconds
        """
        if not buffer:
            return 0.0
        fallback_format = fallback_format or PcmFormat(
            sample_rate=self.settings.silence_sample_rate,
            channels=self.settings.silence_channels,
            bits_per_sample=self.settings.silence_bits_per_sample,
        )
        return wav_container.duration_seconds(buffer, fallback_format)
