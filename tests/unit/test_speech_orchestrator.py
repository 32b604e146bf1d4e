"""Tests for Speech Orchestrator service."""

import threading
import time

import pytest

from scriptcast.core.exceptions import PipelineTimeout, SynthesisError
from scriptcast.models.schemas import (
    EngineCapabilities,
    OrchestratorState,
    ScriptSection,
    SegmentKind,
    SpeechOptions,
    SynthesisResult,
)
from scriptcast.services import wav_container
from scriptcast.services.speech_orchestrator import SpeechOrchestrator


class FakeEngine:
    """Synthesis engine double driven by a per-call callback."""

    def __init__(self, behaviour):
        self.behaviour = behaviour
        self.calls = []
        self.lock = threading.Lock()

    def synthesize(self, text, voice, capabilities, work_dir):
        with self.lock:
            self.calls.append((text, voice, capabilities))
        return self.behaviour(text, voice, capabilities)


def ok(wav):
    return lambda text, voice, capabilities: SynthesisResult(audio=wav, capabilities=capabilities, model_name="m")


def make_sections(n: int) -> list[ScriptSection]:
    return [ScriptSection(title=f"S{i}", content=f"Section number {i}.", order_index=i) for i in range(n, 0, -1)]


@pytest.fixture
def capabilities():
    return EngineCapabilities(accelerated=True, available_models=("tts_models/en/ljspeech/vits",))


def test_pauses_produce_2n_minus_1_sorted_segments(settings, logger, wav_factory, capabilities, tmp_path):
    """Test that N sections with pauses yield 2N-1 segments sorted by section_index."""
    orchestrator = SpeechOrchestrator(settings, logger, FakeEngine(ok(wav_factory(0.5))))

    result = orchestrator.synthesize_sections(make_sections(5), SpeechOptions(), capabilities, tmp_path)

    indexes = [segment.section_index for segment in result.segments]
    assert len(result.segments) == 9
    assert indexes == sorted(indexes)
    assert indexes[1] == 1.5
    assert result.segments[1].section_title == "Pause after S1"
    assert result.segments[1].kind == SegmentKind.SILENCE
    assert result.placeholder_count == 0
    assert result.states[-1] == OrchestratorState.DONE


def test_no_pauses_when_disabled(settings, logger, wav_factory, capabilities, tmp_path):
    """Test that pauses can be turned off."""
    orchestrator = SpeechOrchestrator(settings, logger, FakeEngine(ok(wav_factory(0.5))))
    options = SpeechOptions(add_pause_between_sections=False)

    result = orchestrator.synthesize_sections(make_sections(3), options, capabilities, tmp_path)

    assert [s.section_index for s in result.segments] == [1.0, 2.0, 3.0]


def test_section_failing_twice_becomes_placeholder(settings, logger, wav_factory, capabilities, tmp_path):
    """Test that a section failing both attempts yields a 2s placeholder and the job completes."""
    wav = wav_factory(0.5, sample_rate=22050)

    def behaviour(text, voice, caps):
        if "number 2" in text:
            raise SynthesisError("engine crashed")
        return SynthesisResult(audio=wav, capabilities=caps, model_name="m")

    engine = FakeEngine(behaviour)
    orchestrator = SpeechOrchestrator(settings, logger, engine)
    result = orchestrator.synthesize_sections(make_sections(3), SpeechOptions(), capabilities, tmp_path)

    placeholder = [s for s in result.segments if s.is_placeholder]
    assert len(placeholder) == 1
    assert placeholder[0].section_index == 2.0
    assert placeholder[0].section_title == "S2 (Placeholder - Generation Failed)"
    assert placeholder[0].duration_seconds == 2.0
    # Silence matches the format of the synthesized audio
    assert len(placeholder[0].buffer) == 2 * 22050 * 2
    assert result.pcm_format.sample_rate == 22050
    assert result.placeholder_count == 1
    assert OrchestratorState.PARTIALLY_FAILED in result.states
    assert len(engine.calls) == 4


def test_retry_uses_conservative_settings(settings, logger, wav_factory, capabilities, tmp_path):
    """Test that the retry drops the voice reference, uses the default model and disables acceleration."""
    wav = wav_factory(0.2)
    attempts = {"count": 0}

    def behaviour(text, voice, caps):
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise SynthesisError("first attempt fails")
        return SynthesisResult(audio=wav, capabilities=caps, model_name="m")

    engine = FakeEngine(behaviour)
    orchestrator = SpeechOrchestrator(settings, logger, engine)
    options = SpeechOptions(voice={"voice_reference_paths": ("ref.wav",), "model_name": "xtts"})

    result = orchestrator.synthesize_sections(make_sections(1), options, capabilities, tmp_path)

    retry_voice = engine.calls[1][1]
    assert retry_voice.voice_reference_paths == ()
    assert retry_voice.model_name == settings.tts_default_model
    assert retry_voice.use_acceleration is False
    assert result.placeholder_count == 0


def test_demotion_is_merged_and_never_upgraded(settings, logger, wav_factory, capabilities, tmp_path):
    """Test that an engine demotion during the job is reported in the result."""
    wav = wav_factory(0.2)

    def behaviour(text, voice, caps):
        returned = caps.demoted() if "number 1" in text else caps
        return SynthesisResult(audio=wav, capabilities=returned, model_name="m")

    orchestrator = SpeechOrchestrator(settings, logger, FakeEngine(behaviour))
    options = SpeechOptions(batch_size=1)

    result = orchestrator.synthesize_sections(make_sections(3), options, capabilities, tmp_path)

    assert result.capabilities.accelerated is False


def test_output_order_independent_of_completion_order(settings, logger, wav_factory, capabilities, tmp_path):
    """Test that slow early sections still come first."""
    fast, slow = wav_factory(0.1), wav_factory(0.3)

    def behaviour(text, voice, caps):
        if "number 1" in text:
            time.sleep(0.2)
            return SynthesisResult(audio=slow, capabilities=caps, model_name="m")
        return SynthesisResult(audio=fast, capabilities=caps, model_name="m")

    orchestrator = SpeechOrchestrator(settings, logger, FakeEngine(behaviour))
    result = orchestrator.synthesize_sections(make_sections(4), SpeechOptions(), capabilities, tmp_path)

    assert result.segments[0].buffer == slow
    assert result.segments[0].section_index == 1.0


def test_pipeline_timeout_is_propagated(settings, logger, capabilities, tmp_path):
    """Test that a job deadline expiry is never converted into a placeholder."""

    def behaviour(text, voice, caps):
        raise PipelineTimeout("deadline")

    orchestrator = SpeechOrchestrator(settings, logger, FakeEngine(behaviour))
    with pytest.raises(PipelineTimeout):
        orchestrator.synthesize_sections(make_sections(2), SpeechOptions(), capabilities, tmp_path)


def test_all_failures_use_fallback_silence_format(settings, logger, capabilities, tmp_path):
    """Test that when nothing synthesizes, silence uses the configured format."""

    def behaviour(text, voice, caps):
        raise SynthesisError("down")

    orchestrator = SpeechOrchestrator(settings, logger, FakeEngine(behaviour))
    result = orchestrator.synthesize_sections(make_sections(2), SpeechOptions(), capabilities, tmp_path)

    assert result.placeholder_count == 2
    assert result.pcm_format.sample_rate == settings.silence_sample_rate
    assert all(s.kind == SegmentKind.SILENCE for s in result.segments)
    pause = result.segments[1]
    assert wav_container.duration_seconds(pause.buffer, result.pcm_format) == pytest.approx(0.5)


def test_empty_sections(settings, logger, capabilities, tmp_path):
    """Test that no sections produce no segments."""
    orchestrator = SpeechOrchestrator(settings, logger, FakeEngine(ok(b"")))
    result = orchestrator.synthesize_sections([], SpeechOptions(), capabilities, tmp_path)
    assert result.segments == []
