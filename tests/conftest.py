"""Shared pytest fixtures and configuration."""

import struct
import threading
from pathlib import Path
from typing import Callable, Optional

import pytest

from scriptcast.core.config import Settings
from scriptcast.core.logging_config import get_logger
from scriptcast.models.schemas import ScriptSection
from scriptcast.services.command_executor import CommandExecutor, CommandResult


def build_wav(duration: float = 1.0, sample_rate: int = 24000, channels: int = 1, extra_chunk: bool = False) -> bytes:
    """Build a 16-bit PCM WAV of non-silent samples."""
    frames = int(round(duration * sample_rate))
    payload = bytes([1, 0]) * frames * channels
    block_align = channels * 2
    fmt = struct.pack("<4sIHHIIHH", b"fmt ", 16, 1, channels, sample_rate, sample_rate * block_align, block_align, 16)
    chunks = fmt
    if extra_chunk:
        chunks += struct.pack("<4sI", b"LIST", 4) + b"INFO"
    chunks += struct.pack("<4sI", b"data", len(payload)) + payload
    return b"RIFF" + struct.pack("<I", 4 + len(chunks)) + b"WAVE" + chunks


class FakeExecutor(CommandExecutor):
    """Records every command and answers with a handler."""

    def __init__(self, handler: Optional[Callable] = None):
        self.calls: list[dict] = []
        self.handler = handler or (lambda args, env: CommandResult(exit_code=0))
        self._lock = threading.Lock()

    def run(self, args, timeout, env=None, on_output=None):
        with self._lock:
            self.calls.append({"args": list(args), "timeout": timeout, "env": env})
        return self.handler(list(args), env)

    def commands(self, program: str) -> list[list[str]]:
        return [call["args"] for call in self.calls if Path(call["args"][0]).name == program]


@pytest.fixture
def settings():
    """Create test settings instance."""
    return Settings(
        pexels_api_key="test-key",
        tts_engine="coqui",
        thumbnail_enabled=True,
        job_timeout_seconds=600.0,
    )


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)


@pytest.fixture
def wav_factory():
    """Build WAV containers for tests."""
    return build_wav


@pytest.fixture
def fake_executor_factory():
    """Create FakeExecutor instances with a custom handler."""
    return FakeExecutor


@pytest.fixture
def sample_sections():
    """Three sections deliberately out of order."""
    return [
        ScriptSection(title="Middle", content="The market opened with strong momentum today.", order_index=2),
        ScriptSection(title="Intro", content="Welcome to the weekly technology briefing.", order_index=1),
        ScriptSection(title="Outro", content="Thanks for listening. See you next week!", order_index=3),
    ]
