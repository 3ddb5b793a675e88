"""CLI for the Decision Analyzer.

Provides command-line access to validation, prompt preview, AI analysis and
what-if re-weighting of a stored result.
"""

import asyncio
import json
import math
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .app_logging import setup_logging
from .config import resolve_config, save_default_config
from .exceptions import DecisionAnalyzerError, ValidationFailed
from .orchestrator import AnalysisOrchestrator
from .prompt_builder import build_prompt
from .schema import AnalysisResult, AnalysisStage, Decision, WhatIfOutcome
from .validation import validate_decision
from .whatif import apply_weights, what_if

console = Console()


def load_decision_file(path: str) -> Decision:
    """Load a decision record from a JSON file.

    Raises:
        click.ClickException: If the file is not a valid decision.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return Decision.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise click.ClickException(f"Invalid decision file {path}: {e}") from e


def load_result_file(path: str) -> AnalysisResult:
    """Load a stored analysis result from a JSON file.

    Accepts either a bare result or a decision record carrying it under
    ``result_json``.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict) and "result_json" in data:
            data = data["result_json"]
        return AnalysisResult.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise click.ClickException(f"Invalid result file {path}: {e}") from e


def parse_weights(values: tuple) -> dict[str, float]:
    """Parse ``Name=weight`` pairs."""
    weights = {}
    for value in values:
        if "=" not in value:
            raise click.BadParameter(f"Expected Name=weight, got {value!r}", param_hint="--weight")
        name, raw = value.rsplit("=", 1)
        try:
            weight = float(raw)
        except ValueError as e:
            raise click.BadParameter(f"Weight for {name!r} is not a number", param_hint="--weight") from e
        if not math.isfinite(weight):
            raise click.BadParameter(f"Weight for {name!r} is not a finite number", param_hint="--weight")
        weights[name.strip()] = weight
    return weights


@click.group()
@click.version_option(version="1.0.0", prog_name="decision-analyzer")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging level"
)
@click.option("--logfire", "use_logfire", is_flag=True, help="Also send logs to Logfire")
def main(log_level: str, use_logfire: bool):
    """AI-assisted weighted multi-criteria decision analysis.

    Scores each option against weighted criteria, recommends one, and lets
    you explore how the ranking shifts when weights change.
    """
    setup_logging(level=log_level, include_logfire=use_logfire)


@main.command("validate")
@click.argument("decision_file", type=click.Path(exists=True))
def validate_cmd(decision_file: str):
    """Check that a decision has what analysis needs."""
    decision = load_decision_file(decision_file)
    report = validate_decision(decision)

    if report.valid:
        console.print("[green]Decision is ready for analysis.[/green]")
        return

    console.print("[red]Decision is not ready for analysis:[/red]")
    for error in report.errors:
        console.print(f"  - {error}")
    sys.exit(1)


@main.command("prompt")
@click.argument("decision_file", type=click.Path(exists=True))
def prompt_cmd(decision_file: str):
    """Print the prompt that would be sent to the model."""
    decision = load_decision_file(decision_file)
    click.echo(build_prompt(decision))


@main.command("analyze")
@click.argument("decision_file", type=click.Path(exists=True))
@click.option(
    "--config", "-c",
    "config_path",
    type=click.Path(exists=True),
    help="Path to analyzer-config.yaml (default: discovered or environment)"
)
@click.option(
    "--out", "-o",
    type=click.Path(),
    help="Output file for JSON results"
)
@click.option(
    "--json-output", "-j",
    is_flag=True,
    help="Output raw JSON instead of formatted text"
)
def analyze_cmd(decision_file: str, config_path: Optional[str], out: Optional[str], json_output: bool):
    """Run AI analysis on a decision.

    Examples:
        decision-analyzer analyze decision.json
        decision-analyzer analyze decision.json -c analyzer-config.yaml -o result.json
    """
    decision = load_decision_file(decision_file)

    try:
        config = resolve_config(Path(config_path) if config_path else None)
        orchestrator = AnalysisOrchestrator(config)

        with console.status(AnalysisStage.PREPARING.message) as status:
            def on_progress(stage: AnalysisStage) -> None:
                status.update(stage.message)

            result = asyncio.run(orchestrator.analyze(decision, on_progress=on_progress))

    except ValidationFailed as e:
        console.print("[red]Decision is not ready for analysis:[/red]")
        for error in e.errors:
            console.print(f"  - {error}")
        sys.exit(1)
    except DecisionAnalyzerError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(result.to_json_dict(), indent=2))
    else:
        display_result(result)

    if out:
        Path(out).write_text(json.dumps(result.to_json_dict(), indent=2), encoding="utf-8")
        if not json_output:
            console.print(f"\n[green]Results saved to {out}[/green]")


@main.command("whatif")
@click.argument("decision_file", type=click.Path(exists=True))
@click.argument("result_file", type=click.Path(exists=True))
@click.option(
    "--weight", "-w",
    multiple=True,
    help="Edited criterion weight (format: Name=weight, 1-10)"
)
@click.option(
    "--json-output", "-j",
    is_flag=True,
    help="Output raw JSON instead of formatted text"
)
def whatif_cmd(decision_file: str, result_file: str, weight: tuple, json_output: bool):
    """Re-rank a stored result with edited criterion weights.

    Examples:
        decision-analyzer whatif decision.json result.json -w "Cost=10" -w "Speed=2"
    """
    decision = load_decision_file(decision_file)
    result = load_result_file(result_file)
    weights = parse_weights(weight)

    unknown = [name for name in weights if name not in {c.name for c in decision.criteria}]
    if unknown:
        raise click.BadParameter(f"Unknown criteria: {', '.join(unknown)}", param_hint="--weight")

    edited = apply_weights(decision.criteria, weights)
    outcome = what_if(result, decision.criteria, edited)

    if json_output:
        click.echo(json.dumps(_outcome_json(outcome), indent=2))
    else:
        display_what_if(outcome)


@main.command("init-config")
@click.argument("path", type=click.Path(), default="analyzer-config.yaml")
def init_config_cmd(path: str):
    """Write a default configuration file."""
    save_default_config(Path(path))
    console.print(f"[green]Default configuration written to {path}[/green]")


def _outcome_json(outcome: WhatIfOutcome) -> dict:
    return {
        "changedCriteria": list(outcome.changed_criteria),
        "ranking": [
            {
                "rank": r.rank,
                "originalRank": r.original_rank,
                "rankDelta": r.rank_delta,
                "optionId": r.score.option_id,
                "optionLabel": r.score.option_label,
                "totalScore": r.score.total_score,
            }
            for r in outcome.ranking
        ],
    }


def display_result(result: AnalysisResult) -> None:
    """Display an analysis result in formatted output."""
    rec = result.recommendation
    console.print(Panel(
        f"[bold green]{rec.option_label}[/bold green] ({rec.option_id})\n"
        f"Confidence: {rec.confidence:.0%}\n\n{rec.summary}",
        title="Recommendation",
    ))

    criteria_names = [cs.criterion_name for cs in result.scores[0].criteria_scores] if result.scores else []
    table = Table(title="Scores")
    table.add_column("#", style="dim")
    table.add_column("Option", style="cyan")
    for name in criteria_names:
        table.add_column(name, justify="right")
    table.add_column("Total", justify="right", style="bold")

    ranked = sorted(result.scores, key=lambda s: s.total_score, reverse=True)
    for i, score in enumerate(ranked, 1):
        cells = [str(cs.score) for cs in score.criteria_scores]
        cells += [""] * (len(criteria_names) - len(cells))
        table.add_row(str(i), score.option_label, *cells[:len(criteria_names)], f"{score.total_score:g}")
    console.print(table)

    reasoning = result.reasoning
    console.print(f"\n[bold]Approach:[/bold] {reasoning.decomposition}")
    for heading, items in (
        ("Assumptions", reasoning.assumptions),
        ("Trade-offs", reasoning.tradeoffs),
        ("Risks", reasoning.risks),
    ):
        if items:
            console.print(f"\n[bold]{heading}:[/bold]")
            for item in items:
                console.print(f"  - {item}")
    console.print(f"\n[bold]Sensitivity:[/bold] {reasoning.sensitivity}")


def display_what_if(outcome: WhatIfOutcome) -> None:
    """Display a what-if ranking with rank movement."""
    top = outcome.top_choice
    if top is not None:
        console.print(f"\n[bold]Current top choice:[/bold] [green]{top.option_label}[/green] "
                      f"(score {top.total_score:.2f})")
    if outcome.has_changes:
        console.print(f"Modified: {', '.join(outcome.changed_criteria)}")
    else:
        console.print("[dim]No weight changes; original ranking shown.[/dim]")

    table = Table(title="Updated Rankings")
    table.add_column("#", style="bold")
    table.add_column("Option", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Change", justify="center")

    for ranked in outcome.ranking:
        delta = ranked.rank_delta
        if delta > 0:
            change = f"[green]up {delta}[/green]"
        elif delta < 0:
            change = f"[red]down {abs(delta)}[/red]"
        else:
            change = ""
        table.add_row(str(ranked.rank), ranked.score.option_label, f"{ranked.score.total_score:.2f}", change)
    console.print(table)


if __name__ == "__main__":
    main()
