"""Reflection Pipeline - generate, critique, verify and refine a commit message.

One run walks this state machine, with i starting at 1:

    generate -> reflect(i) -> verify(i) -> accept
                                        -> refine -> reflect(i + 1) ...

Acceptance is decided by commitsmith.pipeline.policy; the loop always ends
once i reaches max_iterations. All per-run state lives in a _RunState, so a
single pipeline instance can serve concurrent runs.
"""

import time
from dataclasses import dataclass, field, replace

import structlog

from commitsmith.analysis.diff_analyzer import DiffAnalyzer, enrich_with_ast
from commitsmith.analysis.models import DiffAnalysis
from commitsmith.config import PipelineConfig
from commitsmith.llm.base import GenerationOptions, LLMClient
from commitsmith.pipeline.cancellation import CancellationToken
from commitsmith.pipeline.errors import (
    NothingToAnalyzeError,
    PipelineCancelled,
    PipelineError,
    ProviderUnavailableError,
)
from commitsmith.pipeline.models import (
    AcceptanceDecision,
    Candidate,
    DiffContext,
    PipelineResult,
    PipelineTimings,
    ReflectionFeedback,
    VerificationResult,
)
from commitsmith.pipeline.parsing import parse_candidate, parse_reflection, parse_verification
from commitsmith.pipeline.policy import decide
from commitsmith.prompts.builder import PromptBuilder, PromptConfig, RefinementRequest
from commitsmith.prompts.examples import select_relevant_examples

log = structlog.get_logger(__name__)

PHASES = ("generation", "reflection", "verification", "refinement")


@dataclass
class _RunState:
    started: float
    iteration: int = 1
    candidate: Candidate | None = None
    analysis: DiffAnalysis | None = None
    reflections: list[ReflectionFeedback] = field(default_factory=list)
    verifications: list[VerificationResult] = field(default_factory=list)
    decisions: list[AcceptanceDecision] = field(default_factory=list)
    timings: dict[str, float] = field(default_factory=lambda: dict.fromkeys(PHASES, 0.0))

    def timings_record(self, zeroed: bool = False) -> PipelineTimings:
        total = time.time() - self.started
        if zeroed:
            return PipelineTimings(total=total)
        return PipelineTimings(total=total, **self.timings)


class ReflectionPipeline:
    """Drives one LLM client through the generate / reflect / verify / refine loop."""

    def __init__(self, client: LLMClient, config: PipelineConfig | None = None,
                 prompt_config: PromptConfig | None = None,
                 diff_analyzer: DiffAnalyzer | None = None,
                 ast_detector=None):
        self.client = client
        self.config = config or PipelineConfig()
        self.prompt_builder = PromptBuilder(prompt_config)
        self.diff_analyzer = diff_analyzer or DiffAnalyzer()
        self.ast_detector = ast_detector

    def run(self, context: DiffContext, cancel_token: CancellationToken | None = None) -> PipelineResult:
        token = cancel_token or CancellationToken()
        state = _RunState(started=time.time())

        try:
            self._check_input(context)
            token.raise_if_cancelled("availability check")
            if not self.client.is_available():
                raise ProviderUnavailableError(f"Provider unavailable: {self.client.name}")

            analysis = self._analyze(context)
            state.analysis = analysis
            examples = select_relevant_examples(analysis, self.config.num_examples)

            token.raise_if_cancelled("generation")
            state.candidate = self._timed(state, "generation", self._generate, context, analysis, examples, None)

            while True:
                iteration = state.iteration

                token.raise_if_cancelled("reflection")
                reflection = self._timed(state, "reflection", self._reflect, state.candidate, context, analysis)
                state.reflections.append(reflection)

                token.raise_if_cancelled("verification")
                verification = self._timed(state, "verification", self._verify, state.candidate, context, analysis)
                state.verifications.append(verification)

                decision = decide(reflection, verification, analysis.complexity, iteration, self.config)
                state.decisions.append(decision)
                log.info(
                    "iteration_decided",
                    iteration=iteration,
                    decision=reflection.decision,
                    quality_score=reflection.quality_score,
                    threshold=decision.threshold,
                    factual_accuracy=verification.factual_accuracy,
                    critical=verification.has_critical_issues,
                    accepted=decision.accepted,
                    reason=decision.reason,
                )
                if decision.accepted:
                    break

                token.raise_if_cancelled("refinement")
                refinement = RefinementRequest(previous=state.candidate, reflection=reflection,
                                               verification=verification)
                try:
                    state.candidate = self._timed(state, "refinement", self._generate,
                                                  context, analysis, examples, refinement)
                except PipelineCancelled:
                    raise
                except Exception as e:
                    log.warning("refinement_failed", iteration=iteration, error=str(e), exc_info=True)
                    break
                state.iteration += 1

            return self._success(state)

        except PipelineCancelled as e:
            log.info("pipeline_cancelled", iterations=len(state.reflections), stage=str(e))
            return self._failure(state, e, keep_candidate=True)
        except PipelineError as e:
            log.warning("pipeline_failed", kind=e.kind, error=str(e))
            return self._failure(state, e)
        except Exception as e:
            log.exception("pipeline_unexpected_error", error=str(e))
            return self._failure(state, e, zero_timings=True)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _check_input(self, context: DiffContext) -> None:
        if not context.diff or not context.diff.strip() or not context.files:
            raise NothingToAnalyzeError("Nothing to analyze: no staged changes")
        if 'diff --git' not in context.diff and not any(
            line.startswith(('+', '-')) for line in context.diff.split('\n')
        ):
            raise NothingToAnalyzeError("Nothing to analyze: diff could not be parsed")

    def _analyze(self, context: DiffContext) -> DiffAnalysis:
        analysis = self.diff_analyzer.analyze(context.diff, list(context.files))
        if self.ast_detector is not None and context.file_versions:
            analysis = enrich_with_ast(analysis, self.ast_detector, context.file_versions)
        return analysis

    def _options(self, temperature: float, max_tokens: int) -> GenerationOptions:
        return GenerationOptions(
            temperature=temperature,
            max_tokens=max_tokens,
            format="json",
            timeout=self.config.call_timeout,
        )

    def _call(self, step: str, prompts: tuple[str, str], options: GenerationOptions) -> str:
        system_prompt, user_prompt = prompts
        if self.config.debug:
            log.debug("llm_request", step=step, system_chars=len(system_prompt), user_chars=len(user_prompt))
        text = self.client.generate(system_prompt, user_prompt, options)
        if self.config.debug:
            log.debug("llm_response", step=step, response=text)
        return text

    def _generate(self, context: DiffContext, analysis: DiffAnalysis, examples,
                  refinement: RefinementRequest | None) -> Candidate:
        step = "refinement" if refinement else "generation"
        prompts = self.prompt_builder.build_generation(context, analysis, examples, refinement)
        options = self._options(self.config.generation_temperature, self.config.generation_max_tokens)
        candidate = parse_candidate(self._call(step, prompts, options))

        forced_type = self.prompt_builder.config.forced_type
        if forced_type and candidate.message.type != forced_type:
            candidate = replace(candidate, message=replace(candidate.message, type=forced_type))
        return candidate

    def _reflect(self, candidate: Candidate, context: DiffContext, analysis: DiffAnalysis) -> ReflectionFeedback:
        prompts = self.prompt_builder.build_reflection(candidate, context, analysis)
        options = self._options(self.config.reflection_temperature, self.config.reflection_max_tokens)
        outcome = parse_reflection(self._call("reflection", prompts, options))
        if not outcome.parsed:
            log.warning("reflection_unparseable", error=outcome.error)
        return outcome.value

    def _verify(self, candidate: Candidate, context: DiffContext, analysis: DiffAnalysis) -> VerificationResult:
        prompts = self.prompt_builder.build_verification(
            candidate, context.diff, analysis, self.config.verification_diff_limit,
        )
        options = self._options(self.config.verification_temperature, self.config.verification_max_tokens)
        outcome = parse_verification(self._call("verification", prompts, options))
        if not outcome.parsed:
            log.warning("verification_unparseable", error=outcome.error)
        return outcome.value

    def _timed(self, state: _RunState, phase: str, fn, *args):
        started = time.time()
        try:
            return fn(*args)
        finally:
            state.timings[phase] += time.time() - started

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _success(self, state: _RunState) -> PipelineResult:
        result = PipelineResult(
            success=True,
            provider=self.client.name,
            message=state.candidate.message,
            confidence=state.candidate.confidence,
            iterations=len(state.reflections),
            reflections=tuple(state.reflections),
            verifications=tuple(state.verifications),
            decisions=tuple(state.decisions),
            final_quality_score=state.reflections[-1].quality_score,
            final_factual_accuracy=state.verifications[-1].factual_accuracy if state.verifications else None,
            timings=state.timings_record(),
            analysis=state.analysis,
        )
        log.info(
            "pipeline_completed",
            iterations=result.iterations,
            quality_score=result.final_quality_score,
            factual_accuracy=result.final_factual_accuracy,
            seconds=round(result.timings.total, 2),
        )
        return result

    def _failure(self, state: _RunState, error: Exception, keep_candidate: bool = False,
                 zero_timings: bool = False) -> PipelineResult:
        candidate = state.candidate if keep_candidate else None
        return PipelineResult(
            success=False,
            provider=self.client.name,
            message=candidate.message if candidate else None,
            confidence=candidate.confidence if candidate else None,
            iterations=len(state.reflections),
            reflections=tuple(state.reflections),
            verifications=tuple(state.verifications),
            decisions=tuple(state.decisions),
            final_quality_score=state.reflections[-1].quality_score if state.reflections else None,
            final_factual_accuracy=state.verifications[-1].factual_accuracy if state.verifications else None,
            timings=state.timings_record(zeroed=zero_timings),
            analysis=state.analysis,
            error=str(error),
            error_kind=getattr(error, "kind", "unexpected"),
        )
