"""Synthesis Engine Adapter - drives local speech-synthesis engines through the command executor."""

import re
import uuid
from pathlib import Path
from typing import Any, Optional

from scriptcast.core.config import Settings
from scriptcast.core.exceptions import (
    AssemblyError,
    CommandError,
    CommandNotFound,
    CommandTimeout,
    SynthesisError,
    SynthesisTimeout,
)
from scriptcast.models.schemas import EngineCapabilities, SynthesisResult, VoiceOptions
from scriptcast.services import wav_container
from scriptcast.services.command_executor import CommandExecutor, CommandResult
from scriptcast.utils.text_utils import escape_script_text

MODEL_PATTERN = re.compile(r"tts_models/[^\s]+")
ACCELERATION_FAILURE_MARKERS = ("cuda", "cudnn", "out of memory")

GPU_PROBE_SCRIPT = (
    "import torch\n"
    "ok = torch.cuda.is_available()\n"
    "name = torch.cuda.get_device_name(0) if ok else ''\n"
    "mem = torch.cuda.get_device_properties(0).total_memory / 1024 ** 3 if ok else 0\n"
    "print('CUDA:{}|DEVICE:{}|MEM:{:.1f}'.format(ok, name, mem))\n"
)

HIGH_END_DEVICE_MARKERS = ("RTX 4090", "RTX 3090", "A100", "H100", "A6000")


def _parse_gpu_probe(output: str) -> dict:
    fields = {}
    lines = output.strip().splitlines()
    if lines:
        for part in lines[-1].split("|"):
            key, _, value = part.partition(":")
            fields[key.strip()] = value.strip()
    accelerated = fields.get("CUDA") == "True"
    device_name = fields.get("DEVICE") or None
    try:
        memory = float(fields.get("MEM", "0") or 0)
    except ValueError:
        memory = 0.0
    return {
        "accelerated": accelerated,
        "device_name": device_name if accelerated else None,
        "high_end_device": accelerated
        and any(marker.lower() in (device_name or "").lower() for marker in HIGH_END_DEVICE_MARKERS),
        "device_memory_gb": memory if accelerated else 0.0,
    }


def probe_capabilities(settings: Settings, executor: CommandExecutor, logger: Any) -> EngineCapabilities:
    """
    Probe the synthesis environment once.

    Any probe failure degrades to a CPU-only snapshot with the default model list.

    Args:
        settings: Application settings
        executor: Command executor
        logger: Logger instance

    Returns:
        Capability snapshot
    """
    gpu = {"accelerated": False}
    try:
        result = executor.run(
            [settings.tts_python, "-c", GPU_PROBE_SCRIPT], timeout=settings.tts_probe_timeout_seconds
        )
        if result.ok:
            gpu = _parse_gpu_probe(result.stdout)
        else:
            logger.debug(f"Acceleration probe exited with {result.exit_code}")
    except CommandError as e:
        logger.debug(f"Acceleration probe unavailable: {e}")

    models: tuple[str, ...] = ()
    if settings.tts_engine == "coqui":
        try:
            result = executor.run([settings.tts_binary, "--list_models"], timeout=settings.tts_list_models_timeout_seconds)
            if result.ok:
                models = tuple(dict.fromkeys(MODEL_PATTERN.findall(result.stdout)))
        except CommandError as e:
            logger.warning(f"Could not list synthesis models: {e}")
    if not models:
        models = (settings.tts_default_model, settings.tts_voice_cloning_model)

    if not settings.tts_use_acceleration:
        gpu = {"accelerated": False}

    capabilities = EngineCapabilities(available_models=models, **gpu)
    logger.info(
        f"🔎 Synthesis capabilities: accelerated={capabilities.accelerated} "
        f"device={capabilities.device_name or 'cpu'} models={len(capabilities.available_models)}"
    )
    return capabilities


def select_model(capabilities: EngineCapabilities, voice: VoiceOptions, settings: Settings) -> str:
    """
    Pick a synthesis model deterministically.

    Voice reference with XTTS-v2 installed selects XTTS-v2; otherwise the reliable
    single-speaker model if listed, then the first listed model, then the default.

    Args:
        capabilities: Capability snapshot
        voice: Voice options
        settings: Application settings

    Returns:
        Model name
    """
    if voice.model_name:
        return voice.model_name
    if voice.voice_reference_paths and capabilities.has_model("xtts_v2"):
        for model in capabilities.available_models:
            if "xtts_v2" in model:
                return model
    if settings.tts_default_model in capabilities.available_models:
        return settings.tts_default_model
    if capabilities.available_models:
        return capabilities.available_models[0]
    return settings.tts_default_model


def is_acceleration_failure(stderr: str) -> bool:
    """Return True if stderr carries the accelerated-hardware failure signature."""
    lowered = stderr.lower()
    return any(marker in lowered for marker in ACCELERATION_FAILURE_MARKERS)


class SynthesisEngine:
    """Base adapter: runs one engine command per call and validates its output."""

    name = "base"

    def __init__(self, settings: Settings, executor: CommandExecutor, logger: Any):
        """
        Initialize synthesis engine.

        Args:
            settings: Application settings
            executor: Command executor for the engine process
            logger: Logger instance
        """
        self.settings = settings
        self.executor = executor
        self.logger = logger

    def build_command(
        self,
        text: str,
        output_path: Path,
        voice: VoiceOptions,
        capabilities: EngineCapabilities,
        work_dir: Path,
    ) -> tuple[list[str], dict[str, str], str]:
        """Return (args, env, model_name) for one synthesis call."""
        raise NotImplementedError

    def synthesize(
        self,
        text: str,
        voice: VoiceOptions,
        capabilities: EngineCapabilities,
        work_dir: Path,
    ) -> SynthesisResult:
        """
        Synthesize text into a container-wrapped audio buffer.

        If the call fails with the acceleration failure signature while accelerated,
        the snapshot is demoted and the call retried once without acceleration.

        Args:
            text: Text to speak
            voice: Voice options
            capabilities: Capability snapshot in effect
            work_dir: Job-scoped directory for temporary files

        Returns:
            SynthesisResult with audio and the (possibly demoted) capabilities

        Raises:
            SynthesisTimeout: If the engine exceeds the hard timeout
            SynthesisError: On process failure, missing or malformed output
        """
        if not text or not text.strip():
            raise SynthesisError("Text cannot be empty")

        accelerated = capabilities.accelerated and voice.use_acceleration
        try:
            audio, model_name = self._attempt(text, voice, capabilities, accelerated, work_dir)
            return SynthesisResult(audio=audio, capabilities=capabilities, model_name=model_name)
        except SynthesisError as e:
            if isinstance(e, SynthesisTimeout) or not (
                accelerated and is_acceleration_failure(e.diagnostics or "")
            ):
                raise
            self.logger.warning(
                f"⚠️ Accelerated synthesis failed ({self.name}); demoting to CPU and retrying once"
            )

        demoted = capabilities.demoted()
        audio, model_name = self._attempt(text, voice, demoted, False, work_dir)
        return SynthesisResult(audio=audio, capabilities=demoted, model_name=model_name)

    def _attempt(
        self,
        text: str,
        voice: VoiceOptions,
        capabilities: EngineCapabilities,
        accelerated: bool,
        work_dir: Path,
    ) -> tuple[bytes, str]:
        effective = capabilities if accelerated else capabilities.demoted()
        output_path = work_dir / f"{self.name}_{uuid.uuid4().hex[:12]}.wav"
        args, env, model_name = self.build_command(text, output_path, voice, effective, work_dir)

        try:
            result = self.executor.run(args, timeout=self.settings.tts_timeout_seconds, env=env or None)
        except CommandTimeout as e:
            raise SynthesisTimeout(
                f"{self.name} synthesis timed out after {e.timeout:.0f}s", diagnostics=e.stderr or None
            ) from e
        except CommandNotFound as e:
            raise SynthesisError(f"{self.name} engine is not installed: {e}") from e

        try:
            return self._read_output(result, output_path), model_name
        finally:
            output_path.unlink(missing_ok=True)

    def _read_output(self, result: CommandResult, output_path: Path) -> bytes:
        if not result.ok:
            raise SynthesisError(
                f"{self.name} exited with code {result.exit_code}",
                diagnostics=result.stderr.strip()[-2000:] or None,
            )
        if not output_path.exists():
            raise SynthesisError(f"{self.name} produced no output file", diagnostics=result.stderr.strip() or None)
        audio = output_path.read_bytes()
        if not audio:
            raise SynthesisError(f"{self.name} produced an empty output file")
        if not wav_container.is_container(audio):
            raise SynthesisError(f"{self.name} output is not a RIFF/WAVE container")
        try:
            header = wav_container.parse_header(audio)
        except AssemblyError as e:
            raise SynthesisError(
                f"{self.name} output is a malformed container: {e.message}",
                diagnostics=result.stderr.strip()[-2000:] or None,
            ) from e
        if not wav_container.payload(audio, header):
            raise SynthesisError(f"{self.name} output contains no audio samples")
        return audio


class CoquiEngine(SynthesisEngine):
    """Coqui ``tts`` command-line engine."""

    name = "coqui"

    def build_command(self, text, output_path, voice, capabilities, work_dir):
        model_name = select_model(capabilities, voice, self.settings)
        args = [
            self.settings.tts_binary,
            "--model_name",
            model_name,
            "--text",
            text,
            "--out_path",
            str(output_path),
        ]

        if EngineCapabilities.supports_multilanguage(model_name):
            args += ["--language_idx", voice.language or self.settings.tts_language]

        env: dict[str, str] = {}
        if capabilities.accelerated:
            args += ["--use_cuda", "true"]
            env["CUDA_VISIBLE_DEVICES"] = "0"

        references = [path for path in voice.voice_reference_paths if Path(path).exists()]
        if EngineCapabilities.supports_voice_cloning(model_name) and references:
            for path in references:
                args += ["--speaker_wav", path]
        elif EngineCapabilities.is_multi_speaker(model_name):
            args += ["--speaker_idx", "0"]

        return args, env, model_name


KOKORO_SCRIPT_TEMPLATE = """import numpy as np
import soundfile as sf
from kokoro import KPipeline

pipeline = KPipeline(lang_code="{lang_code}")
text = "{text}"
chunks = [audio for _, _, audio in pipeline(text, voice="{voice}", speed={speed})]
if not chunks:
    raise SystemExit("kokoro produced no audio")
sf.write("{output_path}", np.concatenate(chunks), {sample_rate})
"""


class KokoroEngine(SynthesisEngine):
    """Kokoro engine driven through a generated Python script."""

    name = "kokoro"

    def render_script(self, text: str, output_path: Path, voice: VoiceOptions) -> str:
        """Render the generation script with every embedded value escaped."""
        return KOKORO_SCRIPT_TEMPLATE.format(
            lang_code=escape_script_text(self.settings.kokoro_lang_code),
            text=escape_script_text(text),
            voice=escape_script_text(voice.kokoro_voice or self.settings.kokoro_voice),
            speed=float(voice.speaking_rate),
            output_path=escape_script_text(str(output_path)),
            sample_rate=int(self.settings.kokoro_sample_rate),
        )

    def build_command(self, text, output_path, voice, capabilities, work_dir):
        script_path = work_dir / f"{output_path.stem}.py"
        script_path.write_text(self.render_script(text, output_path, voice), encoding="utf-8")
        env = {"CUDA_VISIBLE_DEVICES": "0" if capabilities.accelerated else ""}
        return [self.settings.tts_python, str(script_path)], env, f"kokoro/{voice.kokoro_voice or self.settings.kokoro_voice}"


def create_engine(settings: Settings, executor: CommandExecutor, logger: Any) -> SynthesisEngine:
    """
    Create the configured synthesis engine.

    Args:
        settings: Application settings
        executor: Command executor
        logger: Logger instance

    Returns:
        Engine adapter

    Raises:
        ValueError: If the engine name is unknown
    """
    engine = settings.tts_engine.lower()
    if engine == "coqui":
        return CoquiEngine(settings, executor, logger)
    if engine == "kokoro":
        return KokoroEngine(settings, executor, logger)
    raise ValueError(f"Unknown synthesis engine: {settings.tts_engine}")
