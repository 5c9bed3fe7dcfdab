from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_failures, render_health, render_points, render_readings
from models.records import Reading
from services.aggregator import Aggregator
from services.errors import ParseError
from services.parser import InputSyntax, TimestampPrecision, clock_for, parse
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for operating the aero sensor broker.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Broker API base URL (defaults to BROKER_API_URL env or http://localhost:3030).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the broker to answer.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Query the broker health endpoint."""
    state = _get_state(ctx)
    payload = state.client.get_health()
    if not render_health(payload):
        raise typer.Exit(code=1)


@app.command("parse")
def parse_command(
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="File with one raw message per line."
    ),
    syntax: InputSyntax = typer.Option(
        InputSyntax.delimited,
        "--syntax",
        case_sensitive=False,
        help="Wire syntax the messages were captured in.",
    ),
    location: Optional[str] = typer.Option(
        None,
        "--location",
        "-l",
        help="Location tag (defaults to CLUSTER_DISPLAY_NAME env or Default).",
    ),
    aggregate: bool = typer.Option(
        False,
        "--aggregate/--no-aggregate",
        help="Average the readings into one point per measurement.",
    ),
    precision: TimestampPrecision = typer.Option(
        TimestampPrecision.ns,
        "--precision",
        case_sensitive=False,
        help="Epoch unit used for timestamps filled in for messages without one.",
    ),
) -> None:
    """Parse captured device messages offline."""
    tag = location or get_settings().location
    clock = clock_for(precision)
    readings: List[Reading] = []
    failures: List[tuple[int, str]] = []
    for line_number, line in enumerate(file.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            readings.extend(parse(line, tag, syntax, clock=clock))
        except ParseError as exc:
            failures.append((line_number, str(exc)))

    if aggregate:
        render_points(Aggregator().aggregate(readings))
    else:
        render_readings(readings)
    render_failures(failures)


@app.command("serve")
def serve_command(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind."),
    port: int = typer.Option(3030, "--port", "-p", help="Port for the health endpoint."),
) -> None:
    """Run the broker and its health endpoint."""
    uvicorn.run("app.main:app", host=host, port=port)
