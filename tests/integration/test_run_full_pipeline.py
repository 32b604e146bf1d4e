"""Tests for full pipeline orchestrator."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from scriptcast.core.exceptions import SynthesisError
from scriptcast.models.schemas import (
    AssemblyJob,
    AssemblyResult,
    AudioResult,
    CompositionMode,
    EngineCapabilities,
    FootageSearchPage,
    FootageVideo,
    FootageVideoFile,
    VideoResult,
)
from scriptcast.pipelines.run_full_pipeline import MediaAssemblyPipeline, load_job_file, main
from scriptcast.services.command_executor import CommandResult


class FakeFootageClient:
    """Footage client double: every query returns the same HD clips, downloads write placeholder bytes."""

    def __init__(self):
        self.queries = []
        self.downloads = []

    def search_videos(self, params):
        self.queries.append(params.query)
        videos = [
            FootageVideo(
                id=len(self.queries) * 100 + i,
                duration=12,
                width=1920,
                height=1080,
                video_files=[
                    FootageVideoFile(
                        link=f"https://cdn/{params.query}/{i}.mp4",
                        quality="hd",
                        file_type="video/mp4",
                        width=1920,
                        height=1080,
                        fps=30.0,
                    )
                ],
            )
            for i in range(3)
        ]
        return FootageSearchPage(videos=videos)

    def download(self, url, destination, timeout=None):
        self.downloads.append(url)
        destination.write_bytes(b"clip")
        return destination


@pytest.fixture
def tool_handler(wav_factory):
    """Command handler emulating the speech engine, ffmpeg and ffprobe."""
    state = {"narration": [], "tts_fails": False}

    def handler(args, env):
        program = Path(args[0]).name
        if program == "python3":
            return CommandResult(stdout="CUDA:False|DEVICE:none|MEM:0.0\n", exit_code=0)
        if program == "tts":
            if "--list_models" in args:
                return CommandResult(stdout=" 1: tts_models/en/ljspeech/vits\n", exit_code=0)
            if state["tts_fails"]:
                return CommandResult(stderr="model crashed", exit_code=1)
            Path(args[args.index("--out_path") + 1]).write_bytes(wav_factory(1.0))
            return CommandResult(exit_code=0)
        if program == "ffprobe":
            return CommandResult(stdout="12.5\n", exit_code=0)
        if program == "ffmpeg":
            if "narration.wav" in " ".join(args):
                state["narration"].extend(arg for arg in args if arg.endswith("narration.wav"))
            Path(args[-1]).write_bytes(b"mp4")
            return CommandResult(exit_code=0)
        return CommandResult(stderr=f"unexpected {program}", exit_code=127)

    handler.state = state
    return handler


@pytest.fixture
def pipeline(settings, logger, fake_executor_factory, tool_handler):
    """Create pipeline wired to fake tools and a fake footage client."""
    executor = fake_executor_factory(tool_handler)
    instance = MediaAssemblyPipeline(
        settings, logger, executor_factory=lambda deadline: executor, footage_client=FakeFootageClient()
    )
    instance.executor = executor
    return instance


def test_overlay_mode_end_to_end(pipeline, sample_sections, tool_handler, tmp_path):
    """Test an overlay job producing audio, video, subtitles and title card."""
    job = AssemblyJob(job_id="job_overlay", title="Weekly Briefing", sections=sample_sections, mode=CompositionMode.OVERLAY)

    result = pipeline.run(job, output_dir=tmp_path / "out")

    # Three 1s sections plus two 0.5s pauses
    assert result.audio.duration_seconds == pytest.approx(4.0, abs=0.01)
    assert result.audio.placeholder_count == 0
    assert result.video.mode == CompositionMode.OVERLAY
    assert result.video.duration_seconds == pytest.approx(12.5)
    assert result.subtitles and result.subtitles[0].section_title == "Intro"
    assert result.subtitles[-1].end_time <= 4.0 + 1e-6
    for path in (result.audio_path, result.video_path, result.subtitle_path, result.thumbnail_path):
        assert path is not None and path.exists()
    assert result.audio_path.read_bytes()[:4] == b"RIFF"

    # Working directory removed after the job
    narration = Path(tool_handler.state["narration"][0])
    assert not narration.parent.exists()

    mux = pipeline.executor.commands("ffmpeg")[0]
    assert mux[mux.index("-t") + 1] == "4.000"


def test_footage_mode_end_to_end(pipeline, sample_sections):
    """Test a footage job searching, downloading and concatenating clips."""
    job = AssemblyJob(job_id="job_footage", sections=sample_sections, mode=CompositionMode.FOOTAGE)

    result = pipeline.run(job)

    assert result.video.mode == CompositionMode.FOOTAGE
    assert result.video.clip_count == 1
    assert pipeline.footage_client.downloads
    mux = pipeline.executor.commands("ffmpeg")[-1]
    assert "concat" in mux
    assert result.audio_path is None


def test_capabilities_detected_once(pipeline, sample_sections):
    """Test that the environment probe runs once per pipeline instance."""
    job = AssemblyJob(job_id="job_a", sections=sample_sections, mode=CompositionMode.OVERLAY)
    pipeline.run(job)
    pipeline.run(job.model_copy(update={"job_id": "job_b"}))

    assert len(pipeline.executor.commands("python3")) == 1


def test_all_sections_failing_is_fatal(pipeline, sample_sections, tool_handler):
    """Test that a job with no usable audio raises SynthesisError and renders nothing."""
    tool_handler.state["tts_fails"] = True
    job = AssemblyJob(job_id="job_fail", sections=sample_sections, mode=CompositionMode.OVERLAY)

    with pytest.raises(SynthesisError):
        pipeline.run(job)
    assert pipeline.executor.commands("ffmpeg") == []


def test_load_job_file(tmp_path):
    """Test both accepted job file shapes."""
    sections = [{"title": "A", "content": "Hello.", "orderIndex": 1}]
    list_file = tmp_path / "list.json"
    list_file.write_text(json.dumps(sections))
    object_file = tmp_path / "object.json"
    object_file.write_text(json.dumps({"title": "T", "targetDuration": 30, "sections": sections}))

    assert load_job_file(list_file) == {"sections": sections}
    assert load_job_file(object_file)["targetDuration"] == 30

    bad_file = tmp_path / "bad.json"
    bad_file.write_text(json.dumps({"title": "no sections"}))
    with pytest.raises(ValueError):
        load_job_file(bad_file)


def _script_file(tmp_path: Path) -> Path:
    path = tmp_path / "script.json"
    path.write_text(json.dumps({"title": "CLI Test", "sections": [{"title": "A", "content": "Hi.", "order_index": 1}]}))
    return path


@patch("scriptcast.pipelines.run_full_pipeline.setup_logging")
@patch("scriptcast.pipelines.run_full_pipeline.MediaAssemblyPipeline")
def test_main_success(mock_pipeline_class, mock_setup_logging, tmp_path):
    """Test CLI flow returning 0 on success."""
    mock_pipeline_class.return_value.run.return_value = AssemblyResult(
        job_id="cli",
        audio=AudioResult(audio=b"RIFF", duration_seconds=1.0, segment_count=1, capabilities=EngineCapabilities()),
        video=VideoResult(video=b"mp4", duration_seconds=1.0, mode=CompositionMode.OVERLAY),
    )
    test_args = [
        "run_full_pipeline.py",
        "--script",
        str(_script_file(tmp_path)),
        "--mode",
        "overlay",
        "--quality",
        "low",
        "--no-pause",
        "--job-id",
        "cli",
        "--output-dir",
        str(tmp_path / "outputs"),
    ]

    with patch("sys.argv", test_args):
        assert main() == 0

    job = mock_pipeline_class.return_value.run.call_args[0][0]
    assert job.job_id == "cli"
    assert job.title == "CLI Test"
    assert job.mode == CompositionMode.OVERLAY
    assert job.speech.add_pause_between_sections is False


@patch("scriptcast.pipelines.run_full_pipeline.setup_logging")
@patch("scriptcast.pipelines.run_full_pipeline.MediaAssemblyPipeline")
def test_main_failure(mock_pipeline_class, mock_setup_logging, tmp_path):
    """Test CLI flow returning 1 when a stage fails."""
    mock_pipeline_class.return_value.run.side_effect = SynthesisError("all sections failed")
    test_args = ["run_full_pipeline.py", "--script", str(_script_file(tmp_path)), "--output-dir", str(tmp_path)]

    with patch("sys.argv", test_args):
        assert main() == 1
