# src/classlens/cli.py
"""
ClassLens Command Line Interface (CLI).

This module implements the operator-facing terminal interface using `typer`
and `rich`.

Features
--------
- **Servers**: Run the API (`serve`) and the durable queue worker (`worker`).
- **Schema**: Create the database tables (`init-db`).
- **Jobs**: Submit an analysis (`submit`, optionally waiting for the result
  behind a spinner) and inspect a job (`status`).

Usage
-----
    $ classlens init-db
    $ classlens serve --port 8000
    $ classlens worker
    $ classlens submit <class-id> basic --user <user-id> --wait
    $ classlens status <class-id> <job-id> --user <user-id>
"""

from __future__ import annotations

import asyncio
import json
import threading
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from classlens import __version__
from classlens.api.schemas import JobSnapshot
from classlens.client.api import AnalysisClient
from classlens.client.poller import AnalysisPoller
from classlens.core.errors import TransportFailure
from classlens.core.settings import settings

# Ensure env vars (like GEMINI_API_KEY) are loaded before any logic runs
load_dotenv()

app = typer.Typer(
    help="ClassLens: background AI analysis of classroom relationships.",
    rich_markup_mode="markdown",
)
console = Console()

UserOption = Annotated[
    str,
    typer.Option("--user", "-u", envvar="CLASSLENS_USER_ID", help="Caller id sent as X-User-Id."),
]
ApiUrlOption = Annotated[
    str | None,
    typer.Option("--api-url", help="API root (defaults to CLASSLENS_API_URL)."),
]


# --------------------------------------------------------------------------- #
# Helpers
# --------------------------------------------------------------------------- #


def _make_client(api_url: str | None, class_id: str, user_id: str) -> AnalysisClient:
    """Build the HTTP client; tests patch this to inject a mock transport."""
    return AnalysisClient(api_url or settings.api_base_url, class_id, user_id)


def _parse_payload(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"--payload is not valid JSON: {e}") from e
    if not isinstance(value, dict):
        raise typer.BadParameter("--payload must be a JSON object.")
    return value


def _render_result(result: Any) -> None:
    """Show a job result: reports as Markdown, structured results as JSON."""
    if isinstance(result, dict) and isinstance(result.get("content"), str):
        console.print(Panel(result["content"], title="Result", border_style="green"))
    elif isinstance(result, str):
        console.print(Markdown(result))
    else:
        console.print_json(json.dumps(result, ensure_ascii=False, default=str))


def _render_snapshot(snapshot: JobSnapshot) -> None:
    table = Table(show_header=False, box=None)
    table.add_row("[bold]Job[/bold]", snapshot.job_id)
    table.add_row("[bold]Kind[/bold]", snapshot.kind)
    table.add_row("[bold]Status[/bold]", f"[cyan]{snapshot.status.value}[/cyan]")
    table.add_row("[bold]Created[/bold]", snapshot.created_at.isoformat())
    if snapshot.started_at:
        table.add_row("[bold]Started[/bold]", snapshot.started_at.isoformat())
    if snapshot.completed_at:
        table.add_row("[bold]Completed[/bold]", snapshot.completed_at.isoformat())
    if snapshot.error:
        table.add_row("[bold]Error[/bold]", f"[red]{snapshot.error}[/red]")
    console.print(table)


async def _submit_and_wait(
    client: AnalysisClient,
    kind: str,
    payload: dict[str, Any],
    interval: float,
) -> tuple[str, Any, str | None]:
    """Submit and poll until terminal; returns (job_id, result, error)."""
    outcome: dict[str, Any] = {}

    def on_complete(result: Any) -> None:
        outcome["result"] = result

    def on_error(message: str) -> None:
        outcome["error"] = message

    async with client:
        job_id = await client.start_analysis(kind, payload)
        poller = AnalysisPoller(client, interval=interval)
        handle = poller.start_polling(job_id, on_complete, on_error)
        await handle.wait()
    return job_id, outcome.get("result"), outcome.get("error")


async def _submit_only(client: AnalysisClient, kind: str, payload: dict[str, Any]) -> str:
    async with client:
        return await client.start_analysis(kind, payload)


async def _fetch_status(client: AnalysisClient, job_id: str) -> JobSnapshot:
    async with client:
        return await client.get_status(job_id)


# --------------------------------------------------------------------------- #
# Commands
# --------------------------------------------------------------------------- #


@app.command()  # type: ignore[misc]
def version() -> None:
    """Print the installed ClassLens version."""
    console.print(f"ClassLens {__version__}")


@app.command()  # type: ignore[misc]
def serve(
    host: Annotated[str, typer.Option(help="Bind address.")] = "0.0.0.0",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8000,
    reload: Annotated[bool, typer.Option(help="Auto-reload on code changes.")] = False,
) -> None:
    """
    Run the HTTP API with uvicorn.

    The API only dispatches jobs; it does not force-fail jobs stuck in
    **processing**. Run `classlens worker` next to it, or set
    `CLASSLENS_EMBEDDED_WORKER=true` to run the worker loop and its watchdog
    inside the server.
    """
    from classlens.api.server import main as run_server

    run_server(host=host, port=port, reload=reload)


@app.command("init-db")  # type: ignore[misc]
def init_db_command() -> None:
    """Create the job and classroom tables if they do not exist."""
    from classlens.db import init_db

    init_db()
    console.print("[bold green]✅ Database ready.[/bold green]")


@app.command()  # type: ignore[misc]
def worker(
    interval: Annotated[
        float | None,
        typer.Option(help="Idle poll interval in seconds (CLASSLENS_WORKER_POLL_INTERVAL)."),
    ] = None,
) -> None:
    """
    Run the durable queue worker until interrupted.

    The worker runs anything left **pending** and force-fails jobs stuck in
    **processing** past `CLASSLENS_MAX_PROCESSING_SECONDS`.
    """
    from classlens.db import init_db
    from classlens.worker import AnalysisWorker

    init_db()
    stop_event = threading.Event()
    console.print("[bold blue]Worker running.[/bold blue] Press Ctrl+C to stop.")
    try:
        AnalysisWorker(poll_interval=interval).run(stop_event)
    except KeyboardInterrupt:
        stop_event.set()
        console.print("\n[yellow]Worker stopped.[/yellow]")


@app.command()  # type: ignore[misc]
def submit(
    class_id: Annotated[str, typer.Argument(help="Class to analyse.")],
    kind: Annotated[str, typer.Argument(help="Analysis kind, e.g. basic, overview, students.")],
    user: UserOption,
    payload: Annotated[
        str | None, typer.Option("--payload", "-p", help="Kind-specific payload as JSON.")
    ] = None,
    wait: Annotated[bool, typer.Option("--wait", "-w", help="Poll until the job ends.")] = False,
    interval: Annotated[
        float | None, typer.Option(help="Poll interval in seconds (CLASSLENS_POLL_INTERVAL).")
    ] = None,
    api_url: ApiUrlOption = None,
) -> None:
    """Submit an analysis job and optionally wait for its result."""
    body = _parse_payload(payload)
    client = _make_client(api_url, class_id, user)

    try:
        if not wait:
            job_id = asyncio.run(_submit_only(client, kind, body))
            console.print(f"[bold green]✅ Submitted[/bold green] job [cyan]{job_id}[/cyan]")
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            progress.add_task(description=f"Running {kind} analysis...", total=None)
            job_id, result, error = asyncio.run(
                _submit_and_wait(
                    client, kind, body, interval or settings.poll_interval_seconds
                )
            )
    except TransportFailure as e:
        console.print(f"[bold red]❌ API Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    if error is not None:
        console.print(f"[bold red]❌ Job {job_id} failed:[/bold red] {error}")
        raise typer.Exit(code=1)

    console.print(f"[bold green]✨ Complete![/bold green] job [cyan]{job_id}[/cyan]")
    _render_result(result)


@app.command()  # type: ignore[misc]
def status(
    class_id: Annotated[str, typer.Argument(help="Class the job belongs to.")],
    job_id: Annotated[str, typer.Argument(help="Job id returned by submit.")],
    user: UserOption,
    api_url: ApiUrlOption = None,
) -> None:
    """Show the current state of a job (and its result once completed)."""
    client = _make_client(api_url, class_id, user)
    try:
        snapshot = asyncio.run(_fetch_status(client, job_id))
    except TransportFailure as e:
        if e.status_code == 404:
            console.print(f"[bold red]❌ Job {job_id} not found.[/bold red]")
        else:
            console.print(f"[bold red]❌ API Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    _render_snapshot(snapshot)
    if snapshot.result is not None:
        _render_result(snapshot.result)


if __name__ == "__main__":
    app()
