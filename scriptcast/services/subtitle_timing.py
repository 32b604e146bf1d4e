"""Subtitle Timing Engine - word-count proportional subtitle timing and SRT export."""

from pathlib import Path
from typing import Any

from scriptcast.core.config import Settings
from scriptcast.models.schemas import ScriptSection, SubtitleSegment
from scriptcast.utils.text_utils import chunk_text, count_words, format_srt_timestamp


class SubtitleTimingEngine:
    """Distributes the audio duration over sections by word count and splits them into chunks."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize subtitle timing engine.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.pause_seconds = settings.subtitle_pause_seconds

    def compute_timing(self, sections: list[ScriptSection], total_duration: float) -> list[SubtitleSegment]:
        """
        Compute subtitle segments for the full audio track.

        Each section receives ``speech_time * words / total_words`` seconds, where
        speech_time is the total duration minus the pauses between sections, so the
        last segment ends at the end of the track. Sections are split into chunks
        of at most two sentences (or fixed word groups) that share the section's time
        equally.

        Args:
            sections: Script sections in any order
            total_duration: Measured audio duration in seconds

        Returns:
            Non-overlapping subtitle segments with monotonic start times
        """
        ordered = [
            section for section in sorted(sections, key=lambda s: s.order_index) if section.content.strip()
        ]
        if not ordered or total_duration <= 0:
            return []

        word_counts = [count_words(section.content) for section in ordered]
        total_words = sum(word_counts)
        pause_total = self.pause_seconds * (len(ordered) - 1)
        if pause_total >= total_duration:
            pause = 0.0
            speech_time = total_duration
        else:
            pause = self.pause_seconds
            speech_time = total_duration - pause_total

        segments: list[SubtitleSegment] = []
        cursor = 0.0
        for position, (section, words) in enumerate(zip(ordered, word_counts)):
            section_duration = speech_time * words / total_words
            chunks = chunk_text(
                section.content,
                max_sentences=self.settings.subtitle_max_sentences_per_chunk,
                words_per_chunk=self.settings.subtitle_words_per_chunk,
            )
            chunk_duration = section_duration / len(chunks)
            for chunk in chunks:
                end = min(cursor + chunk_duration, total_duration)
                segments.append(
                    SubtitleSegment(
                        text=chunk,
                        start_time=round(cursor, 3),
                        end_time=round(end, 3),
                        section_title=section.title,
                        index=len(segments),
                    )
                )
                cursor = end
            if position < len(ordered) - 1:
                cursor += pause

        self.logger.debug(f"Timed {len(segments)} subtitle segments over {total_duration:.2f}s")
        return segments

    def to_srt(self, segments: list[SubtitleSegment]) -> str:
        """Render segments as SubRip text."""
        blocks = []
        for number, segment in enumerate(segments, start=1):
            blocks.append(
                f"{number}\n"
                f"{format_srt_timestamp(segment.start_time)} --> {format_srt_timestamp(segment.end_time)}\n"
                f"{segment.text}\n"
            )
        return "\n".join(blocks)

    def write_srt(self, segments: list[SubtitleSegment], path: Path) -> Path:
        """Write segments to an .srt file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_srt(segments), encoding="utf-8")
        self.logger.info(f"💬 Wrote {len(segments)} subtitles to {path}")
        return path
