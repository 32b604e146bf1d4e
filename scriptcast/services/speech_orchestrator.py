"""Speech Orchestrator - batched synthesis with retry, placeholders and inter-section pauses."""

from pathlib import Path
from typing import Any, Optional

from scriptcast.core.config import Settings
from scriptcast.core.exceptions import PipelineTimeout
from scriptcast.models.schemas import (
    AudioSegment,
    EngineCapabilities,
    OrchestratorState,
    PcmFormat,
    ScriptSection,
    SegmentKind,
    SpeechOptions,
    SpeechResult,
    SynthesisFailure,
    SynthesisOutcome,
    SynthesisSuccess,
    VoiceOptions,
)
from scriptcast.services import wav_container
from scriptcast.services.tts_engines import SynthesisEngine
from scriptcast.utils.parallel_executor import ParallelExecutor


class SpeechOrchestrator:
    """Turns ordered script sections into ordered audio and silence segments."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        engine: SynthesisEngine,
        parallel_executor: Optional[ParallelExecutor] = None,
    ):
        """
        Initialize speech orchestrator.

        Args:
            settings: Application settings
            logger: Logger instance
            engine: Synthesis engine adapter
            parallel_executor: Executor used for batches (created if omitted)
        """
        self.settings = settings
        self.logger = logger
        self.engine = engine
        self.parallel_executor = parallel_executor or ParallelExecutor(settings, logger)

    def synthesize_sections(
        self,
        sections: list[ScriptSection],
        options: SpeechOptions,
        capabilities: EngineCapabilities,
        work_dir: Path,
        job_id: Optional[str] = None,
    ) -> SpeechResult:
        """
        Synthesize every section, retrying failures and substituting placeholders.

        Args:
            sections: Script sections in any order
            options: Speech options
            capabilities: Capability snapshot at job start
            work_dir: Job-scoped working directory
            job_id: Optional job ID for logging context

        Returns:
            SpeechResult with segments sorted by section_index

        Raises:
            PipelineTimeout: If the job deadline expires during synthesis
        """
        states = [OrchestratorState.PENDING]
        ordered = sorted(sections, key=lambda s: s.order_index)
        if not ordered:
            states.append(OrchestratorState.DONE)
            return SpeechResult(capabilities=capabilities, states=states)

        states.append(OrchestratorState.BATCHING)
        outcomes: dict[int, SynthesisOutcome] = {}
        current = capabilities
        batch_size = max(1, options.batch_size)

        for start in range(0, len(ordered), batch_size):
            batch = ordered[start : start + batch_size]
            self.logger.info(
                f"🎙️ Synthesizing batch {start // batch_size + 1} "
                f"({len(batch)} sections, {start + len(batch)}/{len(ordered)})"
            )
            batch_outcomes = self._run_batch(batch, options.voice, current, work_dir, job_id)
            for offset, outcome in enumerate(batch_outcomes):
                outcomes[start + offset] = outcome
                if isinstance(outcome, SynthesisSuccess):
                    current = current.merge(outcome.result.capabilities)

        failures = [position for position, o in sorted(outcomes.items()) if isinstance(o, SynthesisFailure)]
        if failures:
            states.append(OrchestratorState.PARTIALLY_FAILED)
            self.logger.warning(f"⚠️ {len(failures)} section(s) failed; retrying with conservative settings")
            conservative = options.voice.conservative(self.settings.tts_default_model)
            for position in failures:
                section = ordered[position]
                retry = self._synthesize_one(section, conservative, current, work_dir)
                if isinstance(retry, SynthesisSuccess):
                    self.logger.info(f"✅ Retry succeeded for '{section.title}'")
                else:
                    self.logger.warning(
                        f"⚠️ Section '{section.title}' failed twice, using "
                        f"{self.settings.placeholder_duration_seconds:.1f}s placeholder: {retry.error}"
                    )
                outcomes[position] = retry

        states.append(OrchestratorState.FINALIZING)
        pcm_format = self._silence_format(outcomes)
        segments: list[AudioSegment] = []
        placeholder_count = 0

        for position, section in enumerate(ordered):
            outcome = outcomes[position]
            if isinstance(outcome, SynthesisSuccess):
                audio = outcome.result.audio
                segments.append(
                    AudioSegment(
                        buffer=audio,
                        section_index=float(section.order_index),
                        section_title=section.title,
                        kind=SegmentKind.AUDIO,
                        duration_seconds=wav_container.duration_seconds(audio),
                    )
                )
            else:
                placeholder_count += 1
                segments.append(self._placeholder(section, pcm_format))

            if options.add_pause_between_sections and position < len(ordered) - 1:
                segments.append(
                    AudioSegment(
                        buffer=wav_container.make_silence(options.pause_duration, pcm_format),
                        section_index=section.order_index + 0.5,
                        section_title=f"Pause after {section.title}",
                        kind=SegmentKind.SILENCE,
                        duration_seconds=options.pause_duration,
                    )
                )

        segments.sort(key=lambda segment: segment.section_index)
        states.append(OrchestratorState.DONE)
        self.logger.info(
            f"✅ Speech complete: {len(segments)} segments, {placeholder_count} placeholder(s), "
            f"accelerated={current.accelerated}"
        )
        return SpeechResult(
            segments=segments,
            capabilities=current,
            placeholder_count=placeholder_count,
            pcm_format=pcm_format,
            states=states,
        )

    def _run_batch(
        self,
        batch: list[ScriptSection],
        voice: VoiceOptions,
        capabilities: EngineCapabilities,
        work_dir: Path,
        job_id: Optional[str],
    ) -> list[SynthesisOutcome]:
        tasks = [
            (lambda section=section: self.engine.synthesize(section.content, voice, capabilities, work_dir))
            for section in batch
        ]
        names = [f"tts:{section.title}" for section in batch]
        results = self.parallel_executor.execute(tasks, names, job_id=job_id, max_workers=len(batch))

        outcomes: list[SynthesisOutcome] = []
        for section, (result, error) in zip(batch, results):
            if isinstance(error, PipelineTimeout):
                raise error
            if error is None:
                outcomes.append(SynthesisSuccess(section=section, result=result))
            else:
                outcomes.append(SynthesisFailure(section=section, error=error))
        return outcomes

    def _synthesize_one(
        self,
        section: ScriptSection,
        voice: VoiceOptions,
        capabilities: EngineCapabilities,
        work_dir: Path,
    ) -> SynthesisOutcome:
        try:
            result = self.engine.synthesize(section.content, voice, capabilities, work_dir)
        except PipelineTimeout:
            raise
        except Exception as e:
            return SynthesisFailure(section=section, error=e)
        return SynthesisSuccess(section=section, result=result)

    def _silence_format(self, outcomes: dict[int, SynthesisOutcome]) -> PcmFormat:
        """Format of the first successful container, or the configured fallback."""
        for position in sorted(outcomes):
            outcome = outcomes[position]
            if isinstance(outcome, SynthesisSuccess):
                return wav_container.parse_header(outcome.result.audio).pcm_format
        return PcmFormat(
            sample_rate=self.settings.silence_sample_rate,
            channels=self.settings.silence_channels,
            bits_per_sample=self.settings.silence_bits_per_sample,
        )

    def _placeholder(self, section: ScriptSection, pcm_format: PcmFormat) -> AudioSegment:
        duration = self.settings.placeholder_duration_seconds
        return AudioSegment(
            buffer=wav_container.make_silence(duration, pcm_format),
            section_index=float(section.order_index),
            section_title=f"{section.title} (Placeholder - Generation Failed)",
            kind=SegmentKind.SILENCE,
            is_placeholder=True,
            duration_seconds=duration,
        )
