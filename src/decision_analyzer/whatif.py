"""What-If Rescorer - recompute totals and rankings after weight edits.

Pure and local: no model call, no state between calls, and the stored
AnalysisResult is never modified.

Criteria are matched by *name*, not id, because the ids in a result are the
model's positional tokens and do not survive across edits. Two criteria with
the same name are conflated (the first one wins).
"""

from typing import Iterable, Optional, Sequence

from .schema import (
    AnalysisResult,
    Criterion,
    OptionScore,
    RankedOptionScore,
    WhatIfOutcome,
)


def _find_by_name(criteria: Iterable[Criterion], name: str) -> Optional[Criterion]:
    for criterion in criteria:
        if criterion.name == name:
            return criterion
    return None


def _rescore_option(
    score: OptionScore,
    original_criteria: Sequence[Criterion],
    edited_criteria: Sequence[Criterion],
) -> OptionScore:
    """Rescale one option's total by its edited vs. original weighted sum."""
    baseline = 0.0
    edited = 0.0
    for cs in score.criteria_scores:
        original = _find_by_name(original_criteria, cs.criterion_name)
        changed = _find_by_name(edited_criteria, cs.criterion_name)
        if original is not None and changed is not None and original.weight > 0:
            # Contribution score * w scaled by w'/w
            baseline += cs.score * original.weight
            edited += cs.score * original.weight * (changed.weight / original.weight)
        else:
            baseline += cs.score
            edited += cs.score

    if baseline <= 0:
        return score

    return score.model_copy(update={"total_score": score.total_score * (edited / baseline)})


def rescore(
    original_scores: Sequence[OptionScore],
    original_criteria: Sequence[Criterion],
    edited_criteria: Sequence[Criterion],
) -> list[OptionScore]:
    """Recompute option totals for edited criterion weights.

    For every sub-score whose criterion is found by name in both lists, the
    contribution ``score * weight`` is scaled by ``edited / original`` weight;
    unmatched criteria contribute their raw score. Each option's total is the
    original total rescaled by the ratio of its edited to its baseline sum, so
    unchanged weights reproduce the original totals exactly.

    Per-criterion scores are left untouched and the input order is kept.

    Args:
        original_scores: Scores from the stored AnalysisResult.
        original_criteria: Criteria as they were when the analysis ran.
        edited_criteria: The current (possibly edited) criteria.

    Returns:
        New OptionScore objects, one per input score, in input order.
    """
    return [_rescore_option(s, original_criteria, edited_criteria) for s in original_scores]


def rank_scores(scores: Sequence[OptionScore]) -> list[tuple[int, OptionScore]]:
    """Rank scores by total, descending; ties keep their input order.

    Returns:
        (1-based rank, score) pairs in ranked order.
    """
    ordered = sorted(scores, key=lambda s: s.total_score, reverse=True)
    return [(i + 1, s) for i, s in enumerate(ordered)]


def changed_criteria(
    original_criteria: Sequence[Criterion],
    edited_criteria: Sequence[Criterion],
) -> list[str]:
    """Names of criteria whose edited weight differs from the original."""
    names = []
    for edited in edited_criteria:
        original = _find_by_name(original_criteria, edited.name)
        if original is not None and original.weight != edited.weight and edited.name not in names:
            names.append(edited.name)
    return names


def what_if(
    result: AnalysisResult,
    original_criteria: Sequence[Criterion],
    edited_criteria: Sequence[Criterion],
) -> WhatIfOutcome:
    """Build the what-if view for a stored result and edited weights.

    Rank deltas are ``original_rank - new_rank``: positive means the option
    moved up. Options are matched between rankings by option id.
    """
    new_scores = rescore(result.scores, original_criteria, edited_criteria)

    original_ranks = {}
    for rank, score in rank_scores(result.scores):
        original_ranks.setdefault(score.option_id, rank)

    ranking = tuple(
        RankedOptionScore(
            score=score,
            rank=rank,
            original_rank=original_ranks.get(score.option_id, rank),
        )
        for rank, score in rank_scores(new_scores)
    )

    return WhatIfOutcome(
        scores=tuple(new_scores),
        ranking=ranking,
        changed_criteria=tuple(changed_criteria(original_criteria, edited_criteria)),
    )


def apply_weights(criteria: Sequence[Criterion], weights: dict[str, float]) -> list[Criterion]:
    """Return copies of the criteria with weights replaced by name (clamped to [1, 10]).

    The input criteria are not modified.
    """
    return [
        c.with_weight(weights[c.name]) if c.name in weights else c.model_copy()
        for c in criteria
    ]
