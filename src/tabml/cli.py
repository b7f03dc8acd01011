"""Command-line interface for the tabml engine."""

import json
import math
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from tabml.config.settings import EngineConfig
    from tabml.modeling.artifact import ModelArtifact

app = typer.Typer(
    name="tabml",
    help="Train, compare and query small tabular ML models.",
    no_args_is_help=True,
)

console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to configuration YAML file.",
        exists=True,
        dir_okay=False,
    ),
]
DataOption = Annotated[
    Path,
    typer.Option(
        "--data",
        "-d",
        help="CSV dataset.",
        exists=True,
        dir_okay=False,
    ),
]
FeaturesOption = Annotated[
    str,
    typer.Option("--features", "-f", help="Comma-separated feature columns."),
]
TargetOption = Annotated[
    str | None,
    typer.Option("--target", "-t", help="Target column (optional for clustering)."),
]


def _setup(config: Path | None) -> "EngineConfig":
    """Load configuration and configure logging from it."""
    from tabml.config.loader import load_config
    from tabml.utils.logging import configure_from_settings

    engine_config = load_config(config)
    configure_from_settings(engine_config.logging)
    if config is not None:
        console.print(f"[blue]Loaded configuration from {config}[/blue]")
    return engine_config


def _split_columns(value: str) -> list[str]:
    return [c.strip() for c in value.split(",") if c.strip()]


def _parse_assignments(pairs: list[str] | None, option: str) -> dict[str, str]:
    """Parse repeated key=value options."""
    parsed: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            console.print(f"[red]Error: {option} expects key=value, got '{pair}'[/red]")
            raise typer.Exit(code=1)
        parsed[key.strip()] = value.strip()
    return parsed


def _fmt(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.4f}" if math.isfinite(value) else "n/a"
    return str(value)


def _performance_table(artifact: "ModelArtifact") -> Table:
    table = Table(title=f"{artifact.name} ({artifact.id})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Task", artifact.task.value)
    table.add_row("Algorithm", artifact.algorithm.value)
    table.add_row("Features", ", ".join(artifact.features))
    table.add_row("Target", _fmt(artifact.target))

    perf = artifact.performance.to_dict() if artifact.performance else {}
    for name in ("accuracy", "precision", "recall", "f1_score", "rmse", "mae", "r2_score"):
        if name in perf:
            table.add_row(name, _fmt(perf[name]))
    return table


@app.command()
def train(
    data: DataOption,
    task: Annotated[
        str,
        typer.Option("--task", help="classification, regression or clustering."),
    ],
    algorithm: Annotated[
        str,
        typer.Option(
            "--algorithm",
            "-a",
            help="linear_regression, logistic_regression, kmeans or decision_tree.",
        ),
    ],
    features: FeaturesOption,
    target: TargetOption = None,
    param: Annotated[
        list[str] | None,
        typer.Option("--param", "-p", help="Hyperparameter as key=value (repeatable)."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the trained model package here."),
    ] = None,
    config: ConfigOption = None,
) -> None:
    """Train a model on a CSV dataset."""
    from tabml.errors import TabMLError
    from tabml.modeling.session import MLSession

    engine_config = _setup(config)
    session = MLSession(engine_config)

    try:
        session.load_dataset(data)
        artifact = session.train(
            task=task,
            algorithm=algorithm,
            features=_split_columns(features),
            target=target,
            hyperparameters=_parse_assignments(param, "--param") or None,
        )
    except (TabMLError, ValueError) as e:
        console.print(f"[red]Training failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print()
    console.print(_performance_table(artifact))

    if artifact.performance and artifact.performance.feature_importance:
        console.print("\n[blue]Feature importance:[/blue]")
        for fi in artifact.performance.feature_importance:
            console.print(f"  {fi.feature}: {fi.importance:.3f}")

    if output is not None:
        path = session.export_model(artifact.id, output)
        console.print(f"\n[green]Saved: {path}[/green]")


@app.command()
def predict(
    model: Annotated[
        Path,
        typer.Option(
            "--model",
            "-m",
            help="Model package written by 'tabml train --output'.",
            exists=True,
            dir_okay=False,
        ),
    ],
    data: DataOption,
    value: Annotated[
        list[str] | None,
        typer.Option("--input", "-i", help="Feature value as key=value (repeatable)."),
    ] = None,
    strategy: Annotated[
        str | None,
        typer.Option("--strategy", "-s", help="nearest_neighbors or model."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the result as JSON."),
    ] = False,
    config: ConfigOption = None,
) -> None:
    """Predict with a saved model against a CSV dataset."""
    from tabml.errors import TabMLError
    from tabml.modeling.session import MLSession

    engine_config = _setup(config)
    session = MLSession(engine_config)
    inputs = _parse_assignments(value, "--input")

    try:
        session.load_dataset(data)
        artifact = session.import_model(model)
        result = session.engine.predict(artifact.id, inputs, strategy=strategy)
    except (TabMLError, ValueError) as e:
        console.print(f"[red]Prediction failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    if as_json:
        console.print_json(json.dumps(result.to_dict(), default=str))
        return

    table = Table(title=f"Prediction ({artifact.name})")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for feature, raw in result.inputs.items():
        table.add_row(feature, str(raw))
    table.add_row("[bold]prediction[/bold]", _fmt(result.prediction))
    table.add_row("confidence", _fmt(result.confidence))
    console.print(table)


@app.command()
def compare(
    data: DataOption,
    task: Annotated[
        str,
        typer.Option("--task", help="classification, regression or clustering."),
    ],
    algorithms: Annotated[
        str,
        typer.Option("--algorithms", "-a", help="Comma-separated algorithms (two or more)."),
    ],
    features: FeaturesOption,
    target: TargetOption = None,
    config: ConfigOption = None,
) -> None:
    """Cross-validate, train and rank several algorithms."""
    from tabml.errors import TabMLError
    from tabml.modeling.session import MLSession

    engine_config = _setup(config)
    session = MLSession(engine_config)

    try:
        session.load_dataset(data)
        comparison = session.compare(
            task=task,
            algorithms=_split_columns(algorithms),
            features=_split_columns(features),
            target=target,
        )
    except (TabMLError, ValueError) as e:
        console.print(f"[red]Comparison failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    if not comparison.rankings:
        console.print("[yellow]No algorithm could be trained for this task.[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title=f"Model Comparison ({comparison.task.value})")
    table.add_column("Rank", style="bold")
    table.add_column("Algorithm", style="cyan")
    table.add_column("Score", style="green")
    table.add_column("CV", style="yellow")
    table.add_column("Strengths", style="green")
    table.add_column("Weaknesses", style="red")

    for ranking in comparison.rankings:
        cv = comparison.cross_validation.get(ranking.algorithm)
        cv_text = f"{cv.mean:.4f} ± {cv.std:.4f}" if cv and cv.scores else "-"
        table.add_row(
            str(ranking.rank),
            ranking.algorithm.value,
            f"{ranking.score:.4f}",
            cv_text,
            "\n".join(ranking.strengths),
            "\n".join(ranking.weaknesses),
        )
    console.print(table)

    summary = comparison.summary
    console.print(
        f"\n[green]Best model: {comparison.best_model_id}[/green] "
        f"[dim](best {summary.best_performance:.4f}, "
        f"average {summary.average_performance:.4f}, "
        f"variance {summary.performance_variance:.4f})[/dim]"
    )


@app.command()
def insights(
    data: DataOption,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", min=1, help="Maximum number of recommendations."),
    ] = 3,
    config: ConfigOption = None,
) -> None:
    """Show column importance and suggested models for a CSV dataset."""
    from tabml.errors import TabMLError
    from tabml.modeling.session import MLSession

    engine_config = _setup(config)
    session = MLSession(engine_config)

    try:
        session.load_dataset(data)
    except (TabMLError, ValueError) as e:
        console.print(f"[red]Could not load dataset: {e}[/red]")
        raise typer.Exit(code=1) from e

    importance = session.feature_insights()
    if importance:
        table = Table(title="Column Importance")
        table.add_column("Column", style="cyan")
        table.add_column("Importance", style="green")
        table.add_column("Level")
        for item in importance:
            table.add_row(item.feature, str(item.importance), item.level)
        console.print(table)

    recommendations = session.recommend_models(limit)
    if not recommendations:
        console.print("[yellow]No model recommendations for this dataset.[/yellow]")
        return

    table = Table(title="Recommended Models")
    table.add_column("Task", style="cyan")
    table.add_column("Algorithm", style="cyan")
    table.add_column("Target")
    table.add_column("Features")
    table.add_column("Confidence", style="green")
    for rec in recommendations:
        table.add_row(
            rec.task.value,
            rec.algorithm.value,
            rec.target or "-",
            ", ".join(rec.features),
            f"{rec.confidence}%",
        )
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from tabml import __version__

    console.print(f"tabml version {__version__}")


if __name__ == "__main__":
    app()
