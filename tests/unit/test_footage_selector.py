"""Tests for Footage Selector service."""

import pytest

from scriptcast.core.exceptions import FootageSearchError
from scriptcast.models.schemas import FootageSearchPage, FootageVideo, FootageVideoFile, ScriptSection
from scriptcast.services.footage_selector import (
    FootageSelector,
    extract_keywords,
    score_video,
    select_best_file,
)


def hd_file(link: str, width=1920, height=1080, fps=30.0, quality="hd", file_type="video/mp4") -> FootageVideoFile:
    return FootageVideoFile(link=link, width=width, height=height, fps=fps, quality=quality, file_type=file_type)


def video(video_id: int, duration: float, files=None) -> FootageVideo:
    return FootageVideo(
        id=video_id,
        duration=duration,
        width=1920,
        height=1080,
        video_files=files if files is not None else [hd_file(f"https://cdn/{video_id}.mp4")],
    )


class FakeClient:
    """Search client double answering from a query → videos mapping."""

    def __init__(self, results=None, failing=()):
        self.results = results or {}
        self.failing = set(failing)
        self.queries = []

    def search_videos(self, params):
        self.queries.append(params)
        if params.query in self.failing:
            raise FootageSearchError(f"boom for {params.query}")
        return FootageSearchPage(videos=self.results.get(params.query, []))


def test_extract_keywords():
    """Test stop-word removal, length filter, dedupe and longest-first ordering."""
    keywords = extract_keywords("The Ocean, the ocean! Beautiful waves crash into rocks with power.")

    assert keywords[0] == "beautiful"
    assert "ocean" in keywords and keywords.count("ocean") == 1
    assert "the" not in keywords and "into" not in keywords and "with" not in keywords
    assert all(len(word) > 3 for word in keywords)


def test_extract_keywords_limit():
    """Test that at most ten keywords are returned."""
    text = " ".join(f"keyword{i:02d}" for i in range(30))
    assert len(extract_keywords(text)) == 10


def test_score_prefers_mid_length_hd_clips():
    """Test scoring favors 10-30s HD clips."""
    ideal = video(1, 20)
    long_sd = video(2, 50, [hd_file("x", width=640, height=360, quality="sd", fps=12.0)])
    assert score_video(ideal) > score_video(long_sd)
    assert score_video(ideal) == 10 + 8 + 4 + 3 + 2


def test_select_best_file_ordering():
    """Test best variant selection prefers quality label, sane fps, then area."""
    candidates = video(
        1,
        10,
        [
            hd_file("sd", width=640, height=360, quality="sd"),
            hd_file("hd-odd-fps", width=1280, height=720, fps=90.0),
            hd_file("hd", width=1280, height=720, fps=30.0),
            hd_file("webm", width=3840, height=2160, quality="uhd", file_type="video/webm"),
        ],
    )
    assert select_best_file(candidates).link == "hd"
    assert select_best_file(video(2, 10, [hd_file("w", file_type="video/webm")])) is None


def test_select_clips_reaches_buffered_target(settings, logger):
    """Test that 60s target with factor 1.15 gathers at least 69s of unique clips."""
    section = ScriptSection(title="Ocean", content="Waves crashing against coastal cliffs", order_index=1)
    results = {
        keyword: [video(100 * i + j, 12) for j in range(6)]
        for i, keyword in enumerate(extract_keywords(f"{section.title} {section.content}"))
    }
    client = FakeClient(results)
    selector = FootageSelector(settings, logger, client)

    clips = selector.select_clips([section], 60)

    assert sum(clip.duration for clip in clips) >= 69
    assert len({clip.id for clip in clips}) == len(clips)
    assert all(len([c for c in clips if c.tags & {q.query}]) <= 4 for q in client.queries)


def test_select_clips_filters_duration_and_deduplicates(settings, logger):
    """Test that out-of-range clips are skipped and repeated ids are taken once."""
    section = ScriptSection(title="Forest", content="Forest trees sunlight", order_index=1)
    shared = video(7, 20)
    results = {
        "forest": [shared, video(8, 2), video(9, 60)],
        "sunlight": [shared, video(10, 15)],
        "trees": [],
    }
    selector = FootageSelector(settings, logger, FakeClient(results))
    settings.footage_generic_terms = []

    clips = selector.select_clips([section], 100)

    assert sorted(clip.id for clip in clips) == [7, 10]
    shared_clip = next(clip for clip in clips if clip.id == 7)
    assert shared_clip.tags == {"forest", "sunlight"}


def test_select_clips_falls_back_to_generic_terms(settings, logger):
    """Test generic fallback with relaxed thresholds."""
    section = ScriptSection(title="Zzz", content="Qwertyuiop", order_index=1)
    low_res = [hd_file("https://cdn/low.mp4", width=480, height=270, quality="sd", fps=25.0)]
    results = {"business": [video(i, 10, low_res) for i in range(1, 8)]}
    client = FakeClient(results)
    selector = FootageSelector(settings, logger, client)

    clips = selector.select_clips([section], 20)

    assert len(clips) == 3
    assert any(q.query == "business" and q.per_page == 15 and q.size is None for q in client.queries)


def test_search_failure_for_one_keyword_is_skipped(settings, logger):
    """Test that a failing keyword does not abort selection."""
    section = ScriptSection(title="Mountain", content="mountain glacier", order_index=1)
    client = FakeClient({"glacier": [video(1, 30)]}, failing={"mountain"})
    selector = FootageSelector(settings, logger, client)

    clips = selector.select_clips([section], 20)

    assert [clip.id for clip in clips] == [1]


def test_select_clips_sorted_by_duration_desc(settings, logger):
    """Test final ordering."""
    section = ScriptSection(title="City", content="city skyline", order_index=1)
    results = {"skyline": [video(1, 8), video(2, 25), video(3, 14)]}
    settings.footage_generic_terms = []
    selector = FootageSelector(settings, logger, FakeClient(results))

    clips = selector.select_clips([section], 200)

    assert [clip.duration for clip in clips] == [25, 14, 8]
