"""Prompt Builder - turns a decision into the model's task description.

Options and criteria are referred to by short positional tokens (``opt_1``,
``crit_1``) rather than their stored ids. The tokens are positions in the
*filtered* lists and are recomputed on every call; the normalizer derives the same
scheme to map results back.
"""

from typing import Optional

from .schema import Constraint, Criterion, Decision, Option
from .validation import valid_criteria, valid_options


SYSTEM_PROMPT = (
    "You are an expert decision analyst. Respond with ONLY valid JSON, "
    "no markdown code blocks, no explanations. Start with { and end with }"
)

SCORE_MIN = 1
SCORE_MAX = 10

OUTPUT_SCHEMA = """{
  "recommendation": {
    "optionId": "opt_X",
    "optionLabel": "name of recommended option",
    "confidence": 0.85,
    "summary": "2-3 sentence explanation"
  },
  "scores": [
    {
      "optionId": "opt_1",
      "optionLabel": "option name",
      "totalScore": 75,
      "criteriaScores": [
        {"criterionId": "crit_1", "criterionName": "criterion", "score": 8}
      ]
    }
  ],
  "reasoning": {
    "decomposition": "How you analyzed this",
    "assumptions": ["assumption 1"],
    "tradeoffs": ["tradeoff 1"],
    "risks": ["risk 1"],
    "sensitivity": "How weight changes affect outcome"
  }
}"""


def option_ref_id(index: int) -> str:
    """Synthetic id for the option at a 0-based position in the filtered list."""
    return f"opt_{index + 1}"


def criterion_ref_id(index: int) -> str:
    """Synthetic id for the criterion at a 0-based position in the filtered list."""
    return f"crit_{index + 1}"


def filter_options(decision: Decision) -> list[Option]:
    return valid_options(decision.options)


def filter_criteria(decision: Decision) -> list[Criterion]:
    return valid_criteria(decision.criteria)


def _lookup_ref(ref_id: str, prefix: str, items: list):
    if not ref_id.startswith(prefix):
        return None
    suffix = ref_id[len(prefix):]
    if not suffix.isdigit():
        return None
    index = int(suffix) - 1
    if 0 <= index < len(items):
        return items[index]
    return None


def option_for_ref(decision: Decision, ref_id: str) -> Optional[Option]:
    """Map a synthetic ``opt_N`` id from a result back to the decision's option."""
    return _lookup_ref(ref_id, "opt_", filter_options(decision))


def criterion_for_ref(decision: Decision, ref_id: str) -> Optional[Criterion]:
    """Map a synthetic ``crit_N`` id from a result back to the decision's criterion."""
    return _lookup_ref(ref_id, "crit_", filter_criteria(decision))


def _format_option(index: int, option: Option) -> str:
    line = f'{index + 1}. "{option.label}" (id: "{option_ref_id(index)}")'
    if option.notes:
        line += f"\n   Notes: {option.notes}"
    return line


def _format_criterion(index: int, criterion: Criterion) -> str:
    line = (
        f'{index + 1}. "{criterion.name}" (id: "{criterion_ref_id(index)}") '
        f"[Weight: {criterion.weight}/10]"
    )
    if criterion.description:
        line += f"\n   -> {criterion.description}"
    return line


def _format_constraint(constraint: Constraint) -> str:
    return (
        f"- {constraint.type.value.upper()}: {constraint.value} "
        f"[Priority: {constraint.priority}/5]"
    )


def build_prompt(decision: Decision) -> str:
    """Build the analysis prompt for a decision.

    Pure and deterministic: the same decision always yields the same string,
    and options/criteria with blank labels/names never appear in it.

    Args:
        decision: Decision record or form data.

    Returns:
        The user-role prompt sent to the model.
    """
    options = filter_options(decision)
    criteria = filter_criteria(decision)
    constraints = decision.constraints

    sections = [f"DECISION: {decision.title.strip()}"]

    if decision.context and decision.context.strip():
        sections.append(f"CONTEXT:\n{decision.context.strip()}")

    sections.append(
        f"OPTIONS ({len(options)} choices to evaluate):\n"
        + "\n".join(_format_option(i, o) for i, o in enumerate(options))
    )

    sections.append(
        "EVALUATION CRITERIA (importance-weighted):\n"
        + "\n".join(_format_criterion(i, c) for i, c in enumerate(criteria))
    )

    if constraints:
        sections.append(
            "CONSTRAINTS:\n" + "\n".join(_format_constraint(c) for c in constraints)
        )
    else:
        sections.append("CONSTRAINTS: None specified")

    sections.append(
        f"TASK: Analyze all {len(options)} options against the {len(criteria)} criteria.\n"
        f"Score each option {SCORE_MIN}-{SCORE_MAX} on each criterion, calculate "
        "weighted totals, and recommend the best choice."
    )

    sections.append(
        "Respond with ONLY this JSON structure (no other text, no markdown):\n"
        + OUTPUT_SCHEMA
    )

    return "\n\n".join(sections)
