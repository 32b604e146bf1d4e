"""Tests for Subtitle Timing Engine service."""

import pytest

from scriptcast.models.schemas import ScriptSection
from scriptcast.services.subtitle_timing import SubtitleTimingEngine


@pytest.fixture
def engine(settings, logger):
    """Create SubtitleTimingEngine instance for testing."""
    return SubtitleTimingEngine(settings, logger)


def words(n: int) -> str:
    return " ".join(f"w{i}" for i in range(n)) + "."


def section_durations(segments) -> dict[str, float]:
    durations: dict[str, float] = {}
    for segment in segments:
        durations[segment.section_title] = durations.get(segment.section_title, 0.0) + segment.duration
    return durations


def test_durations_proportional_to_word_count(engine):
    """Test that {20, 50, 30} words over 100s yield {20, 50, 30} seconds within 1s."""
    sections = [
        ScriptSection(title="A", content=words(20), order_index=1),
        ScriptSection(title="B", content=words(50), order_index=2),
        ScriptSection(title="C", content=words(30), order_index=3),
    ]

    segments = engine.compute_timing(sections, 100.0)
    durations = section_durations(segments)

    assert durations["A"] == pytest.approx(20, abs=1)
    assert durations["B"] == pytest.approx(50, abs=1)
    assert durations["C"] == pytest.approx(30, abs=1)


def test_total_with_pauses_matches_audio(engine):
    """Test that durations plus pauses sum to the audio duration and segments never overlap."""
    sections = [
        ScriptSection(title="One", content="First sentence. Second one. Third here.", order_index=1),
        ScriptSection(title="Two", content="Another thought! And a question?", order_index=2),
    ]

    segments = engine.compute_timing(sections, 12.0)

    total = sum(segment.duration for segment in segments) + engine.pause_seconds * (len(sections) - 1)
    assert total == pytest.approx(12.0, abs=0.01)
    for previous, current in zip(segments, segments[1:]):
        assert current.start_time >= previous.end_time
    assert segments[-1].end_time <= 12.0 + 1e-6


def test_sentence_chunks_of_two(engine):
    """Test that sections split into chunks of at most two sentences."""
    section = ScriptSection(title="S", content="One. Two. Three. Four. Five.", order_index=1)

    segments = engine.compute_timing([section], 10.0)

    assert [segment.text for segment in segments] == ["One. Two.", "Three. Four.", "Five."]
    assert segments[0].duration == pytest.approx(10.0 / 3, abs=0.01)


def test_word_chunk_fallback(engine):
    """Test ten-word chunks when there is no sentence punctuation."""
    section = ScriptSection(title="S", content=" ".join(f"word{i}" for i in range(25)), order_index=1)

    segments = engine.compute_timing([section], 5.0)

    assert len(segments) == 3
    assert len(segments[0].text.split()) == 10


def test_sections_sorted_by_order_index(engine, sample_sections):
    """Test that output follows order_index regardless of input order."""
    segments = engine.compute_timing(sample_sections, 9.0)
    assert segments[0].section_title == "Intro"
    assert segments[-1].section_title == "Outro"
    assert [segment.index for segment in segments] == list(range(len(segments)))


def test_empty_inputs(engine):
    """Test degenerate inputs."""
    assert engine.compute_timing([], 10.0) == []
    assert engine.compute_timing([ScriptSection(title="S", content="Hi.", order_index=1)], 0.0) == []


def test_to_srt(engine):
    """Test SubRip rendering."""
    section = ScriptSection(title="S", content="Hello world. Bye now.", order_index=1)
    srt = engine.to_srt(engine.compute_timing([section], 3.5))

    assert srt.startswith("1\n00:00:00,000 --> 00:00:03,500\nHello world. Bye now.\n")


def test_write_srt(engine, tmp_path):
    """Test SRT file output."""
    section = ScriptSection(title="S", content="Hello.", order_index=1)
    path = engine.write_srt(engine.compute_timing([section], 1.0), tmp_path / "subs" / "out.srt")
    assert path.read_text(encoding="utf-8").startswith("1\n")
