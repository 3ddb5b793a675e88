"""Validation Gate - pre-flight check before analysis.

Every rule is checked independently so one call surfaces every problem.
"""

from .exceptions import ValidationFailed
from .schema import Criterion, Decision, Option, ValidationReport


MIN_OPTIONS = 2
MIN_CRITERIA = 1


def valid_options(options: list[Option]) -> list[Option]:
    """Options with a non-empty trimmed label, in their original order."""
    return [o for o in options if o.label.strip()]


def valid_criteria(criteria: list[Criterion]) -> list[Criterion]:
    """Criteria with a non-empty trimmed name, in their original order."""
    return [c for c in criteria if c.name.strip()]


def validate_decision(decision: Decision) -> ValidationReport:
    """Check that a decision has the minimum shape required for analysis.

    Args:
        decision: Decision record or form data.

    Returns:
        ValidationReport with every violated rule listed.
    """
    errors = []

    if not (decision.title or "").strip():
        errors.append("Decision title is required")

    if len(valid_options(decision.options)) < MIN_OPTIONS:
        errors.append(f"At least {MIN_OPTIONS} options are required")

    if len(valid_criteria(decision.criteria)) < MIN_CRITERIA:
        errors.append(f"At least {MIN_CRITERIA} criterion is required")

    return ValidationReport(valid=not errors, errors=errors)


def ensure_valid(decision: Decision) -> None:
    """Raise ValidationFailed when the decision cannot be analyzed."""
    report = validate_decision(decision)
    if not report.valid:
        raise ValidationFailed(report.errors)
