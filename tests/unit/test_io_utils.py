"""Tests for I/O utility functions."""

from pathlib import Path

import pytest

from scriptcast.core.exceptions import PipelineTimeout
from scriptcast.utils.io_utils import (
    JobDeadline,
    create_run_output_dir,
    job_temp_dir,
    resolve_asset_path,
    slugify,
)


def test_slugify():
    """Test slug generation."""
    assert slugify("Hello, World!  Again") == "hello-world-again"
    assert slugify("!!!") == "untitled"
    assert len(slugify("x" * 300)) == 100


def test_create_run_output_dir(tmp_path):
    """Test timestamped output directory creation."""
    output_dir = create_run_output_dir(str(tmp_path), "my-video")
    assert output_dir.is_dir()
    assert output_dir.name.endswith("_my-video")


def test_job_temp_dir_removed_on_success(tmp_path):
    """Test that the working directory is removed after a successful job."""
    with job_temp_dir("job-1", tmp_path) as work_dir:
        (work_dir / "file.bin").write_bytes(b"data")
        assert work_dir.is_dir()
    assert not work_dir.exists()


def test_job_temp_dir_removed_on_failure(tmp_path):
    """Test that the working directory is removed when the job raises."""
    with pytest.raises(RuntimeError):
        with job_temp_dir("job-2", tmp_path) as work_dir:
            (work_dir / "partial.wav").write_bytes(b"x")
            raise RuntimeError("boom")
    assert not work_dir.exists()


def test_resolve_asset_path_local(tmp_path):
    """Test that local-storage URLs resolve under the storage root."""
    path = resolve_asset_path("http://host/api/local-files/videos/a.mp4?v=2", "/api/local-files/", tmp_path)
    assert path == tmp_path / "videos" / "a.mp4"


def test_resolve_asset_path_relative_root(tmp_path, monkeypatch):
    """Test that a relative storage root is taken from the working directory."""
    monkeypatch.chdir(tmp_path)
    path = resolve_asset_path("/api/local-files/a.mp4", "/api/local-files/", "public/uploads")
    assert path == Path(tmp_path) / "public" / "uploads" / "a.mp4"


def test_resolve_asset_path_remote():
    """Test that remote URLs pass through unchanged."""
    url = "https://cdn.example.com/a.mp4"
    assert resolve_asset_path(url, "/api/local-files/", "public/uploads") == url


def test_job_deadline_clamp():
    """Test that timeouts are clamped to the remaining job time."""
    deadline = JobDeadline(100)
    assert deadline.clamp(5) == 5
    assert deadline.clamp(500) <= 100
    assert deadline.clamp(None) <= 100
    assert JobDeadline(None).clamp(7) == 7
    assert JobDeadline(None).remaining() is None


def test_job_deadline_check():
    """Test that an expired deadline raises PipelineTimeout naming the stage."""
    deadline = JobDeadline(0)
    assert deadline.expired()
    with pytest.raises(PipelineTimeout, match="composition"):
        deadline.check("composition")
    JobDeadline(60).check("synthesis")
