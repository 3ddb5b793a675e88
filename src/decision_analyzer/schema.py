"""Pydantic models for the Decision Analyzer.

Input schemas for decision records and output schemas for analysis results.
Result models serialize with the camelCase keys the decision store persists
(``optionId``, ``totalScore`` ...) and are frozen once built.
"""

import math
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================


class DecisionStatus(str, Enum):
    """Lifecycle status of a decision record (driven by the caller)."""
    DRAFT = "draft"
    ANALYZING = "analyzing"
    DONE = "done"
    ARCHIVED = "archived"


class ConstraintType(str, Enum):
    """Kind of advisory constraint attached to a decision."""
    BUDGET = "budget"
    TIMELINE = "timeline"
    RISK = "risk"
    OTHER = "other"

    @classmethod
    def from_string(cls, value: str) -> "ConstraintType":
        """Parse constraint type from string (unknown values map to OTHER)."""
        if not value:
            return cls.OTHER
        mapping = {t.value: t for t in cls}
        return mapping.get(value.lower().strip(), cls.OTHER)


class AnalysisStage(str, Enum):
    """Progress stages reported by the orchestrator, in pipeline order."""
    PREPARING = "preparing"
    REQUESTING = "requesting"
    RETRYING = "retrying"
    PROCESSING = "processing"
    COMPLETE = "complete"

    @property
    def message(self) -> str:
        """User-facing progress message for this stage."""
        return _STAGE_MESSAGES[self]


_STAGE_MESSAGES = {
    AnalysisStage.PREPARING: "Preparing analysis...",
    AnalysisStage.REQUESTING: "Analyzing with AI...",
    AnalysisStage.RETRYING: "Retrying with backup...",
    AnalysisStage.PROCESSING: "Processing results...",
    AnalysisStage.COMPLETE: "Analysis complete!",
}


# =============================================================================
# Decision Input Models
# =============================================================================


class Option(BaseModel):
    """One alternative under consideration."""
    id: str
    label: str = ""
    notes: Optional[str] = None


class Criterion(BaseModel):
    """One evaluation axis with an importance weight in [1, 10]."""
    id: str
    name: str = ""
    weight: int = Field(5, ge=1, le=10)
    description: Optional[str] = None

    def with_weight(self, weight: float) -> "Criterion":
        """Return a copy carrying a new weight, clamped to [1, 10].

        What-if edits go through this so the stored criterion is never touched.

        Raises:
            ValueError: If the weight is NaN or infinite.
        """
        if not math.isfinite(weight):
            raise ValueError(f"Criterion weight must be a finite number, got {weight!r}")
        clamped = min(10, max(1, int(round(weight))))
        return self.model_copy(update={"weight": clamped})


class Constraint(BaseModel):
    """Advisory constraint; rendered into the prompt, never scored."""
    id: str
    type: ConstraintType = ConstraintType.OTHER
    value: str = ""
    priority: int = Field(3, ge=1, le=5)


class Decision(BaseModel):
    """A decision record as supplied by the decision store.

    Form data (no id, no status yet) uses the same model with defaults.
    """
    id: Optional[str] = None
    title: str = ""
    context: Optional[str] = None
    status: DecisionStatus = DecisionStatus.DRAFT
    options: list[Option] = Field(default_factory=list)
    criteria: list[Criterion] = Field(default_factory=list)
    constraints: list[Constraint] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


# =============================================================================
# Analysis Output Models
# =============================================================================


class _ResultModel(BaseModel):
    """Base for result models: frozen, camelCase aliases, snake_case access."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Recommendation(_ResultModel):
    """The single designated best option."""
    option_id: str = Field(alias="optionId")
    option_label: str = Field(alias="optionLabel")
    confidence: float = Field(ge=0.0, le=1.0)
    summary: str


class CriterionScore(_ResultModel):
    """Score of one option on one criterion."""
    criterion_id: str = Field(alias="criterionId")
    criterion_name: str = Field(alias="criterionName")
    score: int = Field(ge=1, le=10)


class OptionScore(_ResultModel):
    """Weighted total and per-criterion breakdown for one option."""
    option_id: str = Field(alias="optionId")
    option_label: str = Field(alias="optionLabel")
    total_score: float = Field(alias="totalScore")
    criteria_scores: tuple[CriterionScore, ...] = Field(default=(), alias="criteriaScores")


class Reasoning(_ResultModel):
    """Narrative explanation accompanying the scores."""
    decomposition: str
    assumptions: tuple[str, ...]
    tradeoffs: tuple[str, ...]
    risks: tuple[str, ...]
    sensitivity: str


class AnalysisResult(_ResultModel):
    """Immutable output of one analysis run.

    Replaced wholesale on re-analysis; what-if views derive new objects.
    """
    recommendation: Recommendation
    scores: tuple[OptionScore, ...]
    reasoning: Reasoning

    def to_json_dict(self) -> dict:
        """Serialize with the camelCase keys used by the decision store."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Derived Views
# =============================================================================


class ValidationReport(BaseModel):
    """Outcome of the pre-flight validation gate."""
    valid: bool
    errors: list[str] = Field(default_factory=list)


class RankedOptionScore(_ResultModel):
    """An option score placed in a ranking, with its movement."""
    score: OptionScore
    rank: int
    original_rank: int = Field(alias="originalRank")

    @property
    def rank_delta(self) -> int:
        """Positive when the option moved up (original rank - new rank)."""
        return self.original_rank - self.rank


class WhatIfOutcome(_ResultModel):
    """Session-local what-if view derived from a stored result."""
    scores: tuple[OptionScore, ...]
    ranking: tuple[RankedOptionScore, ...]
    changed_criteria: tuple[str, ...] = Field(default=(), alias="changedCriteria")

    @property
    def has_changes(self) -> bool:
        """Whether any criterion weight differs from the original."""
        return bool(self.changed_criteria)

    @property
    def top_choice(self) -> Optional[OptionScore]:
        """The option ranked first under the edited weights."""
        return self.ranking[0].score if self.ranking else None
