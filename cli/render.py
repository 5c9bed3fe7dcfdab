from __future__ import annotations

from typing import Any, Sequence

import typer

from models.records import Point, Reading


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def _format_tags(tags: dict[str, str]) -> str:
    return ",".join(f"{key}={value}" for key, value in tags.items()) or "-"


def render_health(payload: dict[str, Any]) -> bool:
    status = payload.get("status")
    healthy = status == "healthy"
    echo_heading("Broker Health")
    typer.secho(
        f"status: {status}",
        fg=typer.colors.GREEN if healthy else typer.colors.RED,
    )
    return healthy


def render_readings(readings: Sequence[Reading]) -> None:
    echo_heading("Readings")
    if not readings:
        typer.echo("No readings parsed.")
        return
    for reading in readings:
        typer.echo(
            f"  - {reading.measurement} [{_format_tags(reading.tags)}] "
            f"value={reading.value} timestamp={reading.timestamp}"
        )


def render_points(points: Sequence[Point]) -> None:
    echo_heading("Points")
    if not points:
        typer.echo("No points produced.")
        return
    for point in points:
        typer.echo(f"  - {point.to_line_protocol()}")


def render_failures(failures: Sequence[tuple[int, str]]) -> None:
    typer.echo()
    echo_heading("Errors")
    if not failures:
        typer.echo("No errors recorded.")
        return
    for line_number, reason in failures:
        typer.echo(f"  - line {line_number}: {reason}")
