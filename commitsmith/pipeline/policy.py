"""Acceptance policy: when is a candidate good enough to stop."""

from commitsmith.config import PipelineConfig
from commitsmith.pipeline.models import AcceptanceDecision, ReflectionFeedback, VerificationResult


def acceptance_threshold(complexity: str, iteration: int, config: PipelineConfig) -> int:
    """Quality score required at this iteration.

    Harder diffs need a higher score; from the second iteration on the bar
    drops by the late-iteration discount, never below the floor.
    """
    base = config.thresholds.get(complexity, config.default_threshold)
    if iteration >= 2:
        return max(config.threshold_floor, base - config.late_iteration_discount)
    return base


def is_quality_acceptable(reflection: ReflectionFeedback, threshold: int, config: PipelineConfig) -> bool:
    if reflection.quality_score < threshold:
        return False
    if reflection.criteria_scores:
        return all(score >= config.min_criterion_score for score in reflection.criteria_scores.values())
    return True


def is_factually_accurate(verification: VerificationResult, config: PipelineConfig) -> bool:
    accuracy = verification.factual_accuracy
    if not verification.has_critical_issues and accuracy >= config.min_factual_accuracy:
        return True
    return accuracy >= config.strong_factual_accuracy


def decide(reflection: ReflectionFeedback, verification: VerificationResult, complexity: str,
           iteration: int, config: PipelineConfig) -> AcceptanceDecision:
    threshold = acceptance_threshold(complexity, iteration, config)
    quality_ok = is_quality_acceptable(reflection, threshold, config)
    accurate = is_factually_accurate(verification, config)

    if reflection.wants_accept and quality_ok and accurate:
        accepted, reason = True, "quality and accuracy met"
    elif iteration >= config.max_iterations:
        accepted, reason = True, "iteration budget exhausted"
    else:
        accepted = False
        failed = []
        if not reflection.wants_accept:
            failed.append("reviewer asked for refinement")
        if not quality_ok:
            failed.append(f"quality {reflection.quality_score:.0f} below {threshold} or weak criterion")
        if not accurate:
            failed.append(f"factual accuracy {verification.factual_accuracy:.0f} insufficient")
        reason = "; ".join(failed)

    return AcceptanceDecision(
        iteration=iteration,
        threshold=threshold,
        quality_acceptable=quality_ok,
        factually_accurate=accurate,
        accepted=accepted,
        reason=reason,
    )
