"""
Analysis orchestrator.

Drives one analysis run: validate, build the prompt, call the primary
provider, normalize, and fail over to the fallback provider once if anything
in that chain fails. The caller owns status transitions on the decision
record and must not run two analyses for the same decision concurrently.
"""

import asyncio
from typing import Callable, Optional

from .app_logging import get_logger
from .config import AnalyzerConfig
from .exceptions import AnalysisFailed, ConfigurationError, ProviderUnavailable
from .normalizer import parse_response
from .prompt_builder import SYSTEM_PROMPT, build_prompt
from .providers import ModelProvider, PydanticAIProvider
from .schema import AnalysisResult, AnalysisStage, Decision
from .validation import ensure_valid

logger = get_logger('orchestrator')

ProgressCallback = Callable[[AnalysisStage], None]


class AnalysisOrchestrator:
    """
    Runs the analysis pipeline with one tier of provider failover.

    State machine:
        preparing -> requesting(primary) -> processing -> complete
        requesting/processing(primary) fails -> retrying -> fallback -> complete
        fallback fails -> AnalysisFailed (single terminal failure)
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        primary: Optional[ModelProvider] = None,
        fallback: Optional[ModelProvider] = None,
        timeout_seconds: Optional[float] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            config: Analyzer configuration; used to build any provider not given
            primary: Explicit primary provider (overrides config.primary)
            fallback: Explicit fallback provider (overrides config.fallback)
            timeout_seconds: Per-attempt deadline; defaults to config or 60s

        Raises:
            ConfigurationError: If neither config nor both providers are given
        """
        if config is None and (primary is None or fallback is None):
            raise ConfigurationError(
                "AnalysisOrchestrator needs an AnalyzerConfig or both providers"
            )

        sampling = config.sampling if config else None
        self.primary = primary or PydanticAIProvider(config.primary, sampling)
        self.fallback = fallback or PydanticAIProvider(config.fallback, sampling)

        if timeout_seconds is not None:
            self.timeout_seconds = timeout_seconds
        elif sampling is not None:
            self.timeout_seconds = sampling.timeout_seconds
        else:
            self.timeout_seconds = 60.0

        logger.info(
            f"AnalysisOrchestrator initialized: primary={self.primary.name}, "
            f"fallback={self.fallback.name}, timeout={self.timeout_seconds}s"
        )

    async def analyze(
        self,
        decision: Decision,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AnalysisResult:
        """
        Analyze a decision.

        Args:
            decision: Decision to analyze (must pass the validation gate)
            on_progress: Optional callback receiving each AnalysisStage in order

        Returns:
            The normalized AnalysisResult

        Raises:
            ValidationFailed: If the decision is not valid for analysis
            AnalysisFailed: If both the primary and fallback attempts fail
        """
        ensure_valid(decision)

        def emit(stage: AnalysisStage) -> None:
            logger.debug(f"Progress: {stage.value}")
            if on_progress is None:
                return
            try:
                on_progress(stage)
            except Exception:
                logger.exception(f"Progress callback failed at stage {stage.value}")

        emit(AnalysisStage.PREPARING)
        prompt = build_prompt(decision)
        logger.info(f"Analyzing decision {decision.id or decision.title!r} ({len(prompt)} char prompt)")

        try:
            emit(AnalysisStage.REQUESTING)
            result = await self._attempt(
                self.primary, prompt, decision,
                on_processing=lambda: emit(AnalysisStage.PROCESSING),
            )
        except Exception as primary_error:
            logger.warning(f"Primary provider {self.primary.name} failed, trying fallback: {primary_error}")
            emit(AnalysisStage.RETRYING)
            try:
                result = await self._attempt(self.fallback, prompt, decision)
            except Exception as fallback_error:
                logger.error(f"Fallback provider {self.fallback.name} also failed: {fallback_error}")
                raise AnalysisFailed() from fallback_error

        emit(AnalysisStage.COMPLETE)
        return result

    async def _attempt(
        self,
        provider: ModelProvider,
        prompt: str,
        decision: Decision,
        on_processing: Optional[Callable[[], None]] = None,
    ) -> AnalysisResult:
        """One provider call plus normalization; any failure raises."""
        try:
            text = await asyncio.wait_for(
                provider.complete(SYSTEM_PROMPT, prompt),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderUnavailable(
                provider.name, f"no response within {self.timeout_seconds}s"
            ) from e

        if on_processing is not None:
            on_processing()

        outcome = parse_response(text, decision)
        if not outcome.ok:
            logger.debug(f"Unparseable response from {provider.name}: {(text or '')[:500]!r}")
            raise outcome.error

        if outcome.repairs:
            logger.debug(f"Repairs applied to {provider.name} response: {outcome.repairs}")
        logger.info(
            f"Analysis from {provider.name}: recommended {outcome.result.recommendation.option_id} "
            f"(confidence {outcome.result.recommendation.confidence:.2f})"
        )
        return outcome.result


async def analyze_decision(
    decision: Decision,
    config: AnalyzerConfig,
    on_progress: Optional[ProgressCallback] = None,
) -> AnalysisResult:
    """Convenience wrapper: build an orchestrator from config and run it once."""
    return await AnalysisOrchestrator(config).analyze(decision, on_progress=on_progress)
