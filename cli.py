#!/usr/bin/env python3
"""
growthwatch CLI

Command-line tools for exploring growth reference data and analysing
measurement histories.
"""

import logging
import sys
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Optional

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

console = Console()


def setup_paths():
    """Add the project root to sys.path for imports."""
    root = Path(__file__).parent
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))


setup_paths()


METRIC_CHOICES = ["weight", "height", "head_circumference"]
SEX_CHOICES = ["male", "female"]

SEVERITY_STYLES = {
    "warning": "bold red",
    "informational": "yellow",
}


def _as_datetime(value) -> datetime:
    """YAML gives dates, datetimes or strings; normalize to datetime."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    return datetime.fromisoformat(str(value))


def _build_service(dataset: Optional[str], settings_path: Optional[str]):
    from src.config import get_settings, load_settings
    from src.engines import GrowthTrackingService

    settings = load_settings(settings_path) if settings_path else get_settings()
    if dataset:
        settings = settings.model_copy(update={"reference_dataset": dataset})
    return GrowthTrackingService(settings=settings)


def _print_report(service, subject_id: str, window_days: Optional[float]):
    """Render standings, rates and alerts for one subject."""
    summary = service.summary(subject_id, window_days)

    table = Table(title=f"Latest standing ({service.table.title})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Age (mo)", justify="right")
    table.add_column("Percentile", justify="right")
    table.add_column("Z", justify="right")
    table.add_column("Category")
    table.add_column("Rate", justify="right")

    for metric, standing in summary.standings.items():
        rate = summary.rates.get(metric)
        table.add_row(
            metric.value,
            f"{standing.value:g} {service.table.unit(metric)}",
            f"{standing.age_months:.1f}",
            f"{standing.percentile:.1f}",
            f"{standing.z_score:+.2f}",
            standing.label,
            f"{rate.per_month:+.2f} {rate.unit}" if rate else "[dim]n/a[/dim]",
        )
    console.print(table)

    for key, reason in summary.unavailable.items():
        console.print(f"[dim]{key}: {reason}[/dim]")

    console.print()
    if not summary.alerts:
        console.print("[green]No growth alerts.[/green]")
        return

    alerts = Table(title="Growth alerts")
    alerts.add_column("Severity")
    alerts.add_column("Kind", style="cyan")
    alerts.add_column("Metric")
    alerts.add_column("Message")
    for alert in summary.alerts:
        style = SEVERITY_STYLES.get(alert.severity.value, "")
        alerts.add_row(
            f"[{style}]{alert.severity.value}[/{style}]",
            alert.kind.value,
            alert.metric.value,
            alert.message,
        )
    console.print(alerts)


@click.group()
@click.version_option(version="0.1.0", prog_name="growthwatch")
@click.option("--verbose", "-v", is_flag=True, help="Show engine log output")
def cli(verbose: bool):
    """
    growthwatch - Growth Percentile Analytics

    Convert weight, height and head circumference measurements into
    percentile standing, growth velocity and alerts.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@cli.command()
@click.option("--metric", "-m", type=click.Choice(METRIC_CHOICES), default="weight",
              help="Measurement type")
@click.option("--sex", "-s", type=click.Choice(SEX_CHOICES), required=True, help="Subject sex")
@click.option("--age", "-a", type=float, required=True, help="Age at measurement")
@click.option("--unit", type=click.Choice(["months", "weeks"]), default="months",
              help="Unit of --age")
@click.option("--value", type=float, required=True, help="Measured value (kg or cm)")
@click.option("--dataset", type=str, default="who_2006", help="Reference dataset")
def percentile(metric: str, sex: str, age: float, unit: str, value: float, dataset: str):
    """
    Compute the percentile standing of a single measurement.

    Example:

        growthwatch percentile --sex male --age 2 --value 5.6
    """
    from knowledge.growth import compute_standing_at, load_reference_table
    from src.exceptions import GrowthError

    try:
        table = load_reference_table(dataset)
        standing = compute_standing_at(metric, sex, age, unit, value, table)
    except GrowthError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    console.print(Panel(
        f"[bold]{standing.label}[/bold]\n\n"
        f"Percentile: {standing.percentile:.1f}\n"
        f"Z-score: {standing.z_score:+.2f}\n"
        f"Age: {standing.age_months:.2f} months",
        title=f"{metric} {value:g} {table.unit(metric)} ({sex})",
        border_style="green",
    ))


@cli.command()
@click.option("--metric", "-m", type=click.Choice(METRIC_CHOICES), default="weight",
              help="Measurement type")
@click.option("--sex", "-s", type=click.Choice(SEX_CHOICES), required=True, help="Subject sex")
@click.option("--ages", type=str, default="0,1,2,3,6,9,12,18,24,36",
              help="Comma-separated ages in months")
@click.option("--dataset", type=str, default="who_2006", help="Reference dataset")
def curves(metric: str, sex: str, ages: str, dataset: str):
    """
    Print reference percentile curves (3rd, 15th, 50th, 85th, 97th).
    """
    from knowledge.growth import CHART_PERCENTILES, load_reference_table, percentile_curves
    from src.exceptions import GrowthError

    age_list = [float(a.strip()) for a in ages.split(",") if a.strip()]
    try:
        table = load_reference_table(dataset)
        lines = percentile_curves(metric, sex, age_list, CHART_PERCENTILES, table)
    except GrowthError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    out = Table(title=f"{metric} ({table.unit(metric)}), {sex}, {table.title}")
    out.add_column("Age (mo)", justify="right", style="cyan")
    for p in CHART_PERCENTILES:
        out.add_column(f"P{p:g}", justify="right")
    for i, age in enumerate(age_list):
        out.add_row(f"{age:g}", *(f"{lines[p][i][1]:.2f}" for p in CHART_PERCENTILES))
    console.print(out)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--window-days", type=float, help="Trailing window for growth rates")
@click.option("--dataset", type=str, help="Reference dataset (overrides settings)")
@click.option("--settings", "settings_path", type=click.Path(exists=True, dir_okay=False),
              help="Settings YAML file")
def analyze(path: str, window_days: Optional[float], dataset: Optional[str],
            settings_path: Optional[str]):
    """
    Analyse a subject file.

    The YAML file holds subject_id, sex, birth_time and a list of
    measurements (timestamp, weight_kg, height_cm, head_circumference_cm).

    Example:

        growthwatch analyze baby.yaml --window-days 60
    """
    from src.exceptions import GrowthError
    from src.models import Sex, SubjectProfile

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    try:
        service = _build_service(dataset, settings_path)
        profile = SubjectProfile(
            subject_id=str(data.get("subject_id", Path(path).stem)),
            sex=Sex(data["sex"]),
            birth_time=_as_datetime(data["birth_time"]),
        )
        service.register_subject(profile)

        measurements = sorted(
            data.get("measurements", []), key=lambda m: _as_datetime(m["timestamp"])
        )
        for m in measurements:
            service.record_measurement(
                profile.subject_id,
                _as_datetime(m["timestamp"]),
                m["weight_kg"],
                m["height_cm"],
                m.get("head_circumference_cm"),
            )

        console.print(f"[bold]{profile.subject_id}[/bold] ({profile.sex.value}), "
                      f"{len(measurements)} measurements\n")
        _print_report(service, profile.subject_id, window_days)
    except (GrowthError, KeyError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.option("--sex", "-s", type=click.Choice(SEX_CHOICES), default="female", help="Subject sex")
@click.option("--start-percentile", type=float, default=50, help="Starting weight percentile")
@click.option("--drift", type=float, default=0.0,
              help="Weight percentile drift per month (negative for faltering growth)")
@click.option("--months", type=int, default=12, help="Months of history")
@click.option("--seed", type=int, help="Random seed for reproducibility")
def demo(sex: str, start_percentile: float, drift: float, months: int, seed: Optional[int]):
    """
    Generate a synthetic history and analyse it end to end.

    Example:

        growthwatch demo --drift -6 --months 9 --seed 42
    """
    from knowledge.growth import GrowthTrajectory
    from src.engines import GrowthTrackingService
    from src.exceptions import GrowthError
    from src.models import DAYS_PER_MONTH, Sex, SubjectProfile

    birth = datetime(2024, 1, 1)
    profile = SubjectProfile(subject_id="demo", sex=Sex(sex), birth_time=birth)
    service = GrowthTrackingService(profiles=[profile])

    trajectory = GrowthTrajectory(
        sex=Sex(sex),
        weight_percentile=start_percentile,
        height_percentile=50,
        weight_drift_per_month=drift,
        seed=seed,
        table=service.table,
    )

    _, max_age = service.table.supported_range("weight", sex)
    ages = [float(m) for m in range(0, months + 1) if m <= max_age]
    try:
        for m in trajectory.series(ages):
            service.record_measurement(
                "demo",
                birth + timedelta(days=m.age_months * DAYS_PER_MONTH),
                m.weight_kg,
                m.height_cm,
                m.head_circumference_cm,
            )
    except GrowthError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    trend = Table(title="Weight trend")
    trend.add_column("Age (mo)", justify="right", style="cyan")
    trend.add_column("Weight (kg)", justify="right")
    trend.add_column("Percentile", justify="right")
    for point in service.growth_trend("demo", "weight"):
        trend.add_row(
            f"{point.age_months:.1f}",
            f"{point.value:.2f}",
            f"{point.percentile:.1f}" if point.percentile is not None else "-",
        )
    console.print(trend)
    console.print()
    _print_report(service, "demo", None)


@cli.command()
@click.option("--dataset", type=str, help="Show a single dataset")
def reference(dataset: Optional[str]):
    """
    List and validate the embedded reference datasets.
    """
    from knowledge.growth import available_datasets, load_reference_table
    from src.exceptions import ReferenceDataError
    from src.models import Metric, Sex

    names = [dataset] if dataset else available_datasets()
    for name in names:
        try:
            table = load_reference_table(name)
        except ReferenceDataError as e:
            console.print(f"[red]✗ {name}: {e}[/red]")
            sys.exit(1)

        out = Table(title=f"{table.title} ({table.name})")
        out.add_column("Metric", style="cyan")
        out.add_column("Sex")
        out.add_column("Unit")
        out.add_column("Grid points", justify="right")
        out.add_column("Supported ages (mo)", justify="right")
        out.add_column("Resolution (mo)", justify="right")
        for metric in Metric:
            for sex in Sex:
                low, high = table.supported_range(metric, sex)
                out.add_row(
                    metric.value,
                    sex.value,
                    table.unit(metric),
                    str(len(table.grid(metric, sex))),
                    f"{low:g}-{high:g}",
                    f"{table.resolution(metric):g}",
                )
        console.print(out)
        if table.source:
            console.print(f"[dim]Source: {table.source}[/dim]")
        console.print("[green]✓ validated[/green]\n")


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
