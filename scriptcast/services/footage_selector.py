"""Footage Selector - keyword search, scoring and coverage-driven clip selection."""

import re
from typing import Any, Optional

from scriptcast.core.config import Settings
from scriptcast.core.exceptions import FootageSearchError
from scriptcast.models.schemas import (
    FootageSearchParams,
    FootageVideo,
    FootageVideoFile,
    ScriptSection,
    SelectedClip,
)
from scriptcast.services.footage_client import PexelsClient

STOP_WORDS = frozenset(
    """
    the and or but in on at to for of with by from up about into through during before after
    above below between among is are was were be been being have has had do does did will would
    could should may might must can this that these those a an
    """.split()
)

STANDARD_FPS = (24, 25, 30, 50, 60)
RESOLUTION_TIERS = (
    (1920, 1080, 8),
    (1280, 720, 7),
    (854, 480, 5),
    (640, 360, 3),
    (480, 270, 1),
)
MAX_KEYWORDS = 10


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """
    Extract search keywords from narration text.

    Lower-cases, strips punctuation, drops stop words and words of three letters or
    fewer, removes duplicates and keeps the longest words first.

    Args:
        text: Section title and content
        limit: Maximum keywords returned

    Returns:
        Keywords, longest first
    """
    words = re.sub(r"[^\w\s]", " ", text.lower()).split()
    unique = dict.fromkeys(word for word in words if len(word) > 3 and word not in STOP_WORDS)
    return sorted(unique, key=len, reverse=True)[:limit]


def _quality_label_score(video_file: FootageVideoFile) -> int:
    label = (video_file.quality or "").lower()
    height = video_file.height or 0
    if "uhd" in label or "1080" in label or height >= 1080:
        return 4
    if label == "hd" or "720" in label or height >= 720:
        return 3
    if "480" in label or height >= 480:
        return 2
    return 1


def _is_standard_fps(fps: Optional[float]) -> bool:
    return fps is not None and any(abs(fps - standard) < 0.5 for standard in STANDARD_FPS)


def _is_hd_file(video_file: FootageVideoFile) -> bool:
    label = (video_file.quality or "").lower()
    return "1080" in label or "720" in label or "hd" in label


def score_video(video: FootageVideo) -> float:
    """
    Score a stock video for selection.

    Combines duration closeness (10-30s best), best resolution tier, declared HD
    quality, mp4 availability and frame-rate normalcy.

    Args:
        video: Search hit

    Returns:
        Score (higher is better)
    """
    score = 0.0
    duration = video.duration
    if 10 <= duration <= 30:
        score += 10
    elif 5 <= duration <= 45:
        score += 8
    elif 3 <= duration <= 60:
        score += 5
    else:
        score += 2

    best_tier = 0
    for video_file in video.video_files:
        width, height = video_file.width or 0, video_file.height or 0
        for min_width, min_height, tier in RESOLUTION_TIERS:
            if width >= min_width and height >= min_height:
                best_tier = max(best_tier, tier)
                break
    score += best_tier

    if any(_is_hd_file(f) for f in video.video_files):
        score += 4
    if any(f.is_mp4 for f in video.video_files):
        score += 3
    if any(_is_standard_fps(f.fps) for f in video.video_files):
        score += 2
    return score


def select_best_file(video: FootageVideo) -> Optional[FootageVideoFile]:
    """
    Pick the best mp4 variant of a video.

    Ordered by quality label, then a sane frame rate (24-60), then a standard frame
    rate, then pixel area.

    Args:
        video: Search hit

    Returns:
        Best variant, or None if there is no mp4 variant
    """
    candidates = [f for f in video.video_files if f.is_mp4]
    if not candidates:
        return None
    return max(
        candidates,
        key=lambda f: (
            _quality_label_score(f),
            f.fps is not None and 24 <= f.fps <= 60,
            _is_standard_fps(f.fps),
            (f.width or 0) * (f.height or 0),
        ),
    )


class FootageSelector:
    """Selects stock clips whose total duration covers the target with a safety buffer."""

    def __init__(self, settings: Settings, logger: Any, client: PexelsClient):
        """
        Initialize footage selector.

        Args:
            settings: Application settings
            logger: Logger instance
            client: Stock-footage search client
        """
        self.settings = settings
        self.logger = logger
        self.client = client
        self.min_duration = settings.footage_min_clip_seconds
        self.max_duration = settings.footage_max_clip_seconds

    def meets_primary_bar(self, video: FootageVideo) -> bool:
        """Duration in range and at least one HD or >=640x360 variant."""
        if not self.min_duration <= video.duration <= self.max_duration:
            return False
        return any(
            _is_hd_file(f) or ((f.width or 0) >= 640 and (f.height or 0) >= 360) for f in video.video_files
        )

    def meets_relaxed_bar(self, video: FootageVideo) -> bool:
        """Duration in range and at least one mp4 variant of >=480x270."""
        if not self.min_duration <= video.duration <= self.max_duration:
            return False
        return any(
            f.is_mp4 and (f.width or 0) >= 480 and (f.height or 0) >= 270 for f in video.video_files
        )

    def select_clips(self, sections: list[ScriptSection], target_duration: float) -> list[SelectedClip]:
        """
        Select clips covering ``target_duration * footage_buffer_factor``.

        Args:
            sections: Script sections supplying keywords
            target_duration: Duration the footage must cover in seconds

        Returns:
            Selected clips, unique by id, sorted by duration descending
        """
        target_total = target_duration * self.settings.footage_buffer_factor
        selected: dict[int, SelectedClip] = {}
        self.logger.info(
            f"🎞️ Selecting footage for {target_duration:.1f}s (target with buffer {target_total:.1f}s)"
        )

        for section in sorted(sections, key=lambda s: s.order_index):
            if self._covered(selected) >= target_total:
                break
            keywords = extract_keywords(f"{section.title} {section.content}")
            for keyword in keywords[: self.settings.footage_keywords_per_section]:
                if self._covered(selected) >= target_total:
                    break
                self._search_and_add(
                    keyword,
                    selected,
                    target_total,
                    per_page=self.settings.footage_per_page,
                    limit=self.settings.footage_clips_per_keyword,
                    accept=self.meets_primary_bar,
                    size=self.settings.footage_size,
                )

        if self._covered(selected) < target_total:
            self.logger.info(
                f"Keyword footage covers {self._covered(selected):.1f}s of {target_total:.1f}s; "
                f"falling back to generic terms"
            )
            for term in self.settings.footage_generic_terms:
                if self._covered(selected) >= target_total:
                    break
                self._search_and_add(
                    term,
                    selected,
                    target_total,
                    per_page=self.settings.footage_generic_per_page,
                    limit=self.settings.footage_generic_clips_per_term,
                    accept=self.meets_relaxed_bar,
                    size=None,
                )

        clips = sorted(selected.values(), key=lambda clip: clip.duration, reverse=True)
        covered = self._covered(selected)
        if covered < target_total:
            self.logger.warning(
                f"⚠️ Footage shortfall: {covered:.1f}s gathered for {target_total:.1f}s target "
                f"({len(clips)} clips)"
            )
        else:
            self.logger.info(f"✅ Selected {len(clips)} clips covering {covered:.1f}s")
        return clips

    @staticmethod
    def _covered(selected: dict[int, SelectedClip]) -> float:
        return sum(clip.duration for clip in selected.values())

    def _search_and_add(
        self,
        query: str,
        selected: dict[int, SelectedClip],
        target_total: float,
        per_page: int,
        limit: int,
        accept,
        size: Optional[str],
    ) -> int:
        params = FootageSearchParams(
            query=query,
            orientation=self.settings.footage_orientation,
            size=size,
            per_page=per_page,
        )
        try:
            page = self.client.search_videos(params)
        except FootageSearchError as e:
            self.logger.warning(f"Footage search for '{query}' failed, skipping: {e.message}")
            return 0

        ranked = sorted(
            (video for video in page.videos if accept(video)), key=score_video, reverse=True
        )
        added = 0
        for video in ranked:
            if added >= limit or self._covered(selected) >= target_total:
                break
            if video.id in selected:
                selected[video.id].tags.add(query)
                continue
            best = select_best_file(video)
            if best is None:
                continue
            selected[video.id] = SelectedClip(
                id=video.id,
                url=best.link,
                duration=video.duration,
                quality=best.quality or "unknown",
                width=best.width or video.width,
                height=best.height or video.height,
                fps=best.fps or 0.0,
                tags={query},
                score=score_video(video),
            )
            added += 1

        self.logger.debug(f"'{query}': {len(ranked)} eligible, {added} added")
        return added
