"""Run and estimate commands - execute or price a workflow plan"""

import asyncio
import json
from pathlib import Path

import click
from pydantic import ValidationError
from rich.panel import Panel
from rich.table import Table
from rich import box

from core.config import Settings, get_settings
from core.errors import InsufficientCredits, UnknownModel, WorkflowError
from core.ledger import CreditLedger
from core.models.workflow import WorkflowPlan
from core.orchestrator import OrchestrationResult, WorkflowOrchestrator
from core.pricing import estimate_plan_cost, units_to_credits
from core.providers import (
    MockImageGenerator,
    MockVideoGenerator,
    MockVideoMerger,
    MockVoiceoverGenerator,
)
from core.renderer import RenderMergeClient
from core.store import LocalJsonStore
from .theme import console, get_theme, status_style


def load_plan(plan_path: str) -> WorkflowPlan:
    """Read and validate a plan JSON file"""
    try:
        data = json.loads(Path(plan_path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise click.ClickException(f"Cannot read plan {plan_path}: {e}")
    try:
        return WorkflowPlan.from_dict(data)
    except ValidationError as e:
        raise click.ClickException(f"Invalid plan {plan_path}:\n{e}")


def build_orchestrator(settings: Settings, mock: bool) -> WorkflowOrchestrator:
    """
    Wire the orchestrator from settings.

    Generation adapters are the offline mocks; the merge step goes to the
    live render service unless --mock is given or provider_mode is "mock".
    """
    store = LocalJsonStore(settings.store_path)
    ledger = CreditLedger(store)

    if mock or settings.provider_mode == "mock":
        renderer = MockVideoMerger()
    else:
        if not settings.render_api_key:
            raise click.ClickException("SHOTSTACK_API_KEY is not set (or use --mock)")
        renderer = RenderMergeClient(
            api_key=settings.render_api_key,
            base_url=settings.effective_render_url,
            poll_interval=settings.render_poll_interval,
            max_attempts=settings.render_max_attempts,
        )

    return WorkflowOrchestrator(
        store=store,
        ledger=ledger,
        image=MockImageGenerator(),
        video=MockVideoGenerator(),
        voiceover=MockVoiceoverGenerator(),
        renderer=renderer,
        max_concurrency=settings.max_concurrency,
        serialize_user_runs=settings.serialize_user_runs,
    )


@click.command()
@click.argument("plan_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--user", "-u", "user_id", required=True, help="User to charge")
@click.option("--mock", is_flag=True, help="Use the mock render service")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def run_cmd(plan_path: str, user_id: str, mock: bool, as_json: bool):
    """Execute a workflow plan end to end"""
    plan = load_plan(plan_path)
    orchestrator = build_orchestrator(get_settings(), mock)

    try:
        if as_json:
            result = asyncio.run(orchestrator.execute(plan, user_id))
        else:
            with console.status(f"Running {len(plan.scenes)} scenes..."):
                result = asyncio.run(orchestrator.execute(plan, user_id))
    except InsufficientCredits as e:
        raise click.ClickException(str(e))
    except UnknownModel as e:
        raise click.ClickException(str(e))
    except WorkflowError as e:
        raise click.ClickException(f"Run could not be recorded: {e}")

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _print_result(result)

    if not result.success:
        raise SystemExit(1)


def _print_result(result: OrchestrationResult):
    theme = get_theme()
    style = status_style(result.status.value)
    lines = [
        f"[{theme.label}]Run:[/{theme.label}] {result.run_id}",
        f"[{theme.label}]Status:[/{theme.label}] [{style}]{result.status.value}[/{style}]",
        f"[{theme.label}]Credits used:[/{theme.label}] {units_to_credits(result.credits_used):.1f}",
    ]
    if result.final_video_url:
        lines.append(f"[{theme.label}]Video:[/{theme.label}] {result.final_video_url}")
    if result.error_message:
        lines.append(f"[{theme.failed}]Error:[/{theme.failed}] {result.error_message}")
    console.print(Panel("\n".join(lines), title="Workflow Run", border_style=theme.panel_border))


@click.command()
@click.argument("plan_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def estimate_cmd(plan_path: str, as_json: bool):
    """Price a plan without running it"""
    plan = load_plan(plan_path)
    try:
        breakdown = estimate_plan_cost(plan)
    except UnknownModel as e:
        raise click.ClickException(str(e))

    if as_json:
        click.echo(json.dumps(breakdown.to_dict(), indent=2))
        return

    theme = get_theme()
    table = Table(title="Plan Estimate", box=box.ROUNDED)
    table.add_column("Stage", style=theme.label)
    table.add_column("Item")
    table.add_column("Model", style=theme.dimmed)
    table.add_column("Credits", justify="right")

    for scene in plan.scenes:
        table.add_row(
            "image", scene.id, plan.image_model_for(scene),
            f"{units_to_credits(breakdown.images[scene.id]):.1f}",
        )
        table.add_row(
            "video", f"{scene.id} ({scene.duration:g}s)", plan.video_model_for(scene),
            f"{units_to_credits(breakdown.videos[scene.id]):.1f}",
        )
    if breakdown.voiceover is not None:
        table.add_row("voiceover", "narration", plan.tts_model,
                      f"{units_to_credits(breakdown.voiceover):.1f}")
    table.add_row("merge", "render", "", f"{units_to_credits(breakdown.merge):.1f}")
    table.add_section()
    table.add_row("[bold]total[/bold]", "", "", f"[bold]{breakdown.total_credits:.1f}[/bold]")

    console.print(table)
    if abs(plan.estimated_credits - breakdown.total_credits) > 1e-9:
        console.print(
            f"[{theme.pending}]Plan declares {plan.estimated_credits:g} credits; "
            f"priced at {breakdown.total_credits:.1f}[/{theme.pending}]"
        )
