"""Run status command"""

import asyncio
import json

import click
from rich.panel import Panel
from rich.table import Table
from rich import box

from core.config import get_settings
from core.errors import RecordNotFound
from core.progress import build_run_report
from core.store import LocalJsonStore
from .theme import console, get_theme, status_style


@click.command()
@click.argument("run_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status_cmd(run_id: str, as_json: bool):
    """Show a run's status, jobs and artifacts"""
    store = LocalJsonStore(get_settings().store_path)
    try:
        report = asyncio.run(build_run_report(store, run_id))
    except RecordNotFound:
        raise click.ClickException(f"Run not found: {run_id}")

    if as_json:
        click.echo(json.dumps(report, indent=2))
        return

    theme = get_theme()
    style = status_style(report["status"])
    progress = report["progress"]
    summary = [
        f"[{theme.label}]User:[/{theme.label}] {report['user_id']}",
        f"[{theme.label}]Status:[/{theme.label}] [{style}]{report['status']}[/{style}]",
        f"[{theme.label}]Jobs:[/{theme.label}] {progress['completed']}/{progress['total']} completed",
        f"[{theme.label}]Credits used:[/{theme.label}] {report['credits_used']:.1f}",
    ]
    if report["final_video_url"]:
        summary.append(f"[{theme.label}]Video:[/{theme.label}] {report['final_video_url']}")
    if report["error_message"]:
        summary.append(f"[{theme.failed}]Error:[/{theme.failed}] {report['error_message']}")
    console.print(Panel.fit("\n".join(summary), title=f"Run {run_id}", border_style=theme.panel_border))

    if not report["jobs"]:
        return

    table = Table(title="Jobs", box=box.ROUNDED)
    table.add_column("Node", style=theme.label)
    table.add_column("Type")
    table.add_column("Adapter", style=theme.dimmed)
    table.add_column("Status")
    table.add_column("Credits", justify="right")

    for job in report["jobs"]:
        job_style = status_style(job["status"])
        table.add_row(
            job["node_id"],
            job["node_type"],
            job["adapter"],
            f"[{job_style}]{job['status']}[/{job_style}]",
            f"{job['credits_used']:.1f}",
        )
    console.print(table)
