"""Result Normalizer - turns raw model text into a strict AnalysisResult.

The model is an untrusted, lossy channel. Two tiers of handling:

- A payload that cannot be parsed at all (no JSON object, or JSON that stays
  broken after light repair) is a hard failure, so the orchestrator can retry
  against the fallback provider.
- Anything wrong *inside* a parsed payload (missing fields, wrong types,
  out-of-range numbers, unknown ids) is repaired with defaults. Past the parse
  step, coercion never raises.
"""

import json
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .exceptions import InvalidJson, NoJsonFound, NormalizationError
from .prompt_builder import (
    SCORE_MAX,
    SCORE_MIN,
    criterion_ref_id,
    filter_criteria,
    filter_options,
    option_ref_id,
)
from .schema import (
    AnalysisResult,
    Criterion,
    CriterionScore,
    Decision,
    Option,
    OptionScore,
    Reasoning,
    Recommendation,
)


DEFAULT_CONFIDENCE = 0.7
NEUTRAL_TOTAL = 50.0
NEUTRAL_SCORE = 5

DEFAULT_SUMMARY = "Analysis completed."
DEFAULT_DECOMPOSITION = "Decision analyzed based on provided criteria."
DEFAULT_ASSUMPTIONS = ("Based on provided information",)
DEFAULT_TRADEOFFS = ("Each option has unique advantages",)
DEFAULT_RISKS = ("Results depend on input accuracy",)
DEFAULT_SENSITIVITY = "Recommendation may change if weights are adjusted."

_TRAILING_COMMA_OBJECT = re.compile(r",\s*}")
_TRAILING_COMMA_ARRAY = re.compile(r",\s*]")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


@dataclass
class ParseOutcome:
    """Result of parsing a model response.

    Either ``ok`` with a fully populated result (and the list of repairs that
    were applied to get there), or not ``ok`` with the hard-failure error.
    """
    ok: bool
    result: Optional[AnalysisResult] = None
    error: Optional[NormalizationError] = None
    repairs: list[str] = field(default_factory=list)


# =============================================================================
# Extraction and repair
# =============================================================================


def _reject_constant(name: str) -> Any:
    """NaN and Infinity are not JSON."""
    raise ValueError(f"non-standard constant {name}")


def extract_json(raw_text: str) -> dict:
    """Extract and parse the JSON object embedded in raw model text.

    Takes the greedy span from the first ``{`` to the last ``}`` (or to the end
    of the text when no closing brace exists), strips trailing commas and
    control characters, then parses strictly.

    Raises:
        NoJsonFound: If the text contains no ``{`` at all.
        InvalidJson: If the span does not parse as a JSON object.
    """
    text = raw_text or ""
    start = text.find("{")
    if start == -1:
        raise NoJsonFound()

    end = text.rfind("}")
    span = text[start:end + 1] if end > start else text[start:]

    span = _TRAILING_COMMA_OBJECT.sub("}", span)
    span = _TRAILING_COMMA_ARRAY.sub("]", span)
    span = _CONTROL_CHARS.sub(" ", span)

    try:
        data = json.loads(span, parse_constant=_reject_constant)
    except ValueError as e:
        reason = e.msg if isinstance(e, json.JSONDecodeError) else str(e)
        raise InvalidJson(f"Invalid JSON in AI response: {reason}") from e

    if not isinstance(data, dict):
        raise InvalidJson("Invalid JSON in AI response: top level is not an object")
    return data


# =============================================================================
# Field coercion
# =============================================================================


def _as_str(value: Any, default: str) -> str:
    """Coerce a scalar to a non-empty string, else return the default."""
    if value is None or isinstance(value, (dict, list)):
        return default
    if isinstance(value, bool):
        return str(value).lower()
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else default


def _as_number(value: Any) -> Optional[float]:
    """Coerce to a finite float, or None when the value is not numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _as_text_list(value: Any) -> Optional[tuple[str, ...]]:
    """Coerce every element of a list to a string; None if not a list."""
    if not isinstance(value, list):
        return None
    return tuple(v if isinstance(v, str) else json.dumps(v) for v in value)


def _unused_ref(make_id: Callable[[int], str], used: set[str], preferred: int) -> int:
    """Position whose synthetic id is not taken yet, preferring ``preferred``."""
    if make_id(preferred) not in used:
        return preferred
    k = 0
    while make_id(k) in used:
        k += 1
    return k


def clamp_score(value: Any) -> int:
    """Clamp a raw criterion score to an integer in [1, 10] (5 if not numeric)."""
    number = _as_number(value)
    if number is None:
        return NEUTRAL_SCORE
    return min(SCORE_MAX, max(SCORE_MIN, int(math.floor(number + 0.5))))


def clamp_confidence(value: Any) -> float:
    """Clamp a raw confidence to [0, 1] (0.7 if not numeric)."""
    number = _as_number(value)
    if number is None:
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, number))


# =============================================================================
# Normalizer
# =============================================================================


class ResultNormalizer:
    """Repairs a parsed model payload against one decision's ground truth."""

    def __init__(self, decision: Decision):
        self.options: list[Option] = filter_options(decision)
        self.criteria: list[Criterion] = filter_criteria(decision)
        self.repairs: list[str] = []

    def normalize(self, data: dict) -> AnalysisResult:
        """Coerce a parsed payload into a schema-conformant result."""
        self.repairs = []
        scores = self._normalize_scores(data.get("scores"))
        recommendation = self._normalize_recommendation(data.get("recommendation"), scores)
        reasoning = self._normalize_reasoning(data.get("reasoning"))
        return AnalysisResult(
            recommendation=recommendation,
            scores=tuple(scores),
            reasoning=reasoning,
        )

    # -- scores ---------------------------------------------------------------

    def _neutral_criteria_scores(self) -> list[CriterionScore]:
        return [
            CriterionScore(
                criterion_id=criterion_ref_id(j),
                criterion_name=c.name,
                score=NEUTRAL_SCORE,
            )
            for j, c in enumerate(self.criteria)
        ]

    def _neutral_option_score(self, index: int) -> OptionScore:
        return OptionScore(
            option_id=option_ref_id(index),
            option_label=self.options[index].label,
            total_score=NEUTRAL_TOTAL,
            criteria_scores=tuple(self._neutral_criteria_scores()),
        )

    def _normalize_scores(self, raw_scores: Any) -> list[OptionScore]:
        if not isinstance(raw_scores, list) or not raw_scores:
            self.repairs.append("scores missing; synthesized neutral scores")
            return [self._neutral_option_score(i) for i in range(len(self.options))]

        limit = len(self.options) or len(raw_scores)
        if len(raw_scores) > limit:
            self.repairs.append(f"dropped {len(raw_scores) - limit} extra score entries")

        scores = []
        present: set[str] = set()
        for i, entry in enumerate(raw_scores[:limit]):
            score = self._normalize_option_score(i, entry)
            if score.option_id in present:
                k = _unused_ref(option_ref_id, present, i)
                self.repairs.append(
                    f"scores[{i}].optionId {score.option_id!r} repeated; using {option_ref_id(k)}"
                )
                score = score.model_copy(update={
                    "option_id": option_ref_id(k),
                    "option_label": (
                        self.options[k].label if k < len(self.options) else score.option_label
                    ),
                })
            present.add(score.option_id)
            scores.append(score)

        # Pad options the model skipped so every valid option is scored
        for i in range(len(self.options)):
            if len(scores) >= len(self.options):
                break
            if option_ref_id(i) not in present:
                self.repairs.append(f"{option_ref_id(i)} missing; added neutral score")
                scores.append(self._neutral_option_score(i))
        return scores

    def _normalize_option_score(self, index: int, entry: Any) -> OptionScore:
        if not isinstance(entry, dict):
            self.repairs.append(f"scores[{index}] malformed")
            entry = {}

        fallback_label = (
            self.options[index].label if index < len(self.options) else f"Option {index + 1}"
        )
        total = _as_number(entry.get("totalScore"))
        if total is None:
            self.repairs.append(f"scores[{index}].totalScore defaulted")
            total = NEUTRAL_TOTAL

        return OptionScore(
            option_id=_as_str(entry.get("optionId"), option_ref_id(index)),
            option_label=_as_str(entry.get("optionLabel"), fallback_label),
            total_score=total,
            criteria_scores=tuple(
                self._normalize_criteria_scores(index, entry.get("criteriaScores"))
            ),
        )

    def _normalize_criteria_scores(self, option_index: int, raw: Any) -> list[CriterionScore]:
        if not isinstance(raw, list):
            self.repairs.append(f"scores[{option_index}].criteriaScores synthesized")
            return self._neutral_criteria_scores()

        limit = len(self.criteria) or len(raw)
        result = []
        present: set[str] = set()
        for j, entry in enumerate(raw[:limit]):
            if not isinstance(entry, dict):
                entry = {}
            fallback_name = (
                self.criteria[j].name if j < len(self.criteria) else f"Criterion {j + 1}"
            )
            criterion_id = _as_str(entry.get("criterionId"), criterion_ref_id(j))
            criterion_name = _as_str(entry.get("criterionName"), fallback_name)
            if criterion_id in present:
                k = _unused_ref(criterion_ref_id, present, j)
                self.repairs.append(
                    f"scores[{option_index}].criteriaScores[{j}].criterionId "
                    f"{criterion_id!r} repeated; using {criterion_ref_id(k)}"
                )
                criterion_id = criterion_ref_id(k)
                if k < len(self.criteria):
                    criterion_name = self.criteria[k].name
            present.add(criterion_id)
            result.append(CriterionScore(
                criterion_id=criterion_id,
                criterion_name=criterion_name,
                score=clamp_score(entry.get("score")),
            ))

        for j, criterion in enumerate(self.criteria):
            if len(result) >= len(self.criteria):
                break
            if criterion_ref_id(j) not in present:
                result.append(CriterionScore(
                    criterion_id=criterion_ref_id(j),
                    criterion_name=criterion.name,
                    score=NEUTRAL_SCORE,
                ))
        return result

    # -- recommendation -------------------------------------------------------

    def _normalize_recommendation(
        self, raw: Any, scores: list[OptionScore]
    ) -> Recommendation:
        if not isinstance(raw, dict):
            self.repairs.append("recommendation missing; defaulted")
            raw = {}

        first_label = self.options[0].label if self.options else "Unknown"
        option_id = _as_str(raw.get("optionId"), option_ref_id(0))
        by_id = {s.option_id: s for s in scores}

        if scores and option_id not in by_id:
            # Recommend something that was actually scored
            best = max(scores, key=lambda s: s.total_score)
            self.repairs.append(
                f"recommendation.optionId {option_id!r} unknown; using {best.option_id}"
            )
            option_id = best.option_id
            option_label = best.option_label
        else:
            matched = by_id.get(option_id)
            option_label = _as_str(
                raw.get("optionLabel"),
                matched.option_label if matched else first_label,
            )

        return Recommendation(
            option_id=option_id,
            option_label=option_label,
            confidence=clamp_confidence(raw.get("confidence")),
            summary=_as_str(raw.get("summary"), DEFAULT_SUMMARY),
        )

    # -- reasoning ------------------------------------------------------------

    def _normalize_reasoning(self, raw: Any) -> Reasoning:
        if not isinstance(raw, dict):
            self.repairs.append("reasoning missing; defaulted")
            raw = {}

        lists = {}
        for key, default in (
            ("assumptions", DEFAULT_ASSUMPTIONS),
            ("tradeoffs", DEFAULT_TRADEOFFS),
            ("risks", DEFAULT_RISKS),
        ):
            values = _as_text_list(raw.get(key))
            if values is None:
                self.repairs.append(f"reasoning.{key} defaulted")
                values = default
            lists[key] = values

        return Reasoning(
            decomposition=_as_str(raw.get("decomposition"), DEFAULT_DECOMPOSITION),
            sensitivity=_as_str(raw.get("sensitivity"), DEFAULT_SENSITIVITY),
            **lists,
        )


# =============================================================================
# Public entry points
# =============================================================================


def parse_response(raw_text: str, decision: Decision) -> ParseOutcome:
    """Parse raw model text without raising.

    Returns:
        ParseOutcome with the normalized result, or the hard-failure error.
    """
    try:
        data = extract_json(raw_text)
    except NormalizationError as e:
        return ParseOutcome(ok=False, error=e)

    normalizer = ResultNormalizer(decision)
    result = normalizer.normalize(data)
    return ParseOutcome(ok=True, result=result, repairs=list(normalizer.repairs))


def normalize(raw_text: str, decision: Decision) -> AnalysisResult:
    """Parse and normalize raw model text into an AnalysisResult.

    Raises:
        NoJsonFound: If the text contains no JSON object.
        InvalidJson: If the JSON cannot be parsed even after repair.
    """
    outcome = parse_response(raw_text, decision)
    if not outcome.ok:
        raise outcome.error
    return outcome.result
