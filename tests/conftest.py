"""Shared fixtures for the decision analyzer tests."""

import pytest

from decision_analyzer.schema import Constraint, Criterion, Decision, Option


@pytest.fixture
def decision() -> Decision:
    """A valid decision with 3 options, 2 criteria and one constraint."""
    return Decision(
        id="dec-1",
        title="Choose a programming language to learn",
        context="Beginner looking for good job prospects.",
        options=[
            Option(id="a1f3", label="Python", notes="Versatile"),
            Option(id="b7c9", label="JavaScript"),
            Option(id="c2d4", label="Java"),
        ],
        criteria=[
            Criterion(id="k1", name="Learning Curve", weight=9, description="Ease for beginners"),
            Criterion(id="k2", name="Job Market", weight=6),
        ],
        constraints=[
            Constraint(id="x1", type="timeline", value="3 months", priority=4),
        ],
    )


@pytest.fixture
def two_by_two() -> Decision:
    """A valid decision with exactly 2 options and 2 criteria."""
    return Decision(
        title="Pick a laptop",
        options=[Option(id="o1", label="Laptop A"), Option(id="o2", label="Laptop B")],
        criteria=[
            Criterion(id="c1", name="Price", weight=7),
            Criterion(id="c2", name="Battery", weight=4),
        ],
    )
