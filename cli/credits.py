"""Credit ledger commands"""

import asyncio
import json

import click
from rich.table import Table
from rich import box

from core.config import get_settings
from core.ledger import CreditLedger
from core.pricing import NEW_USER_BONUS, credits_to_units, units_to_credits
from core.store import LocalJsonStore
from .theme import console, get_theme


def _ledger() -> CreditLedger:
    return CreditLedger(LocalJsonStore(get_settings().store_path))


@click.group()
def credits_cmd():
    """Inspect and grant credits"""
    pass


@credits_cmd.command("balance")
@click.argument("user_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def balance_cmd(user_id: str, as_json: bool):
    """Show a user's credit balance"""
    balance = asyncio.run(_ledger().get_balance_credits(user_id))
    if as_json:
        click.echo(json.dumps({"user_id": user_id, "balance": balance}))
        return
    console.print(f"[{get_theme().label}]{user_id}[/{get_theme().label}]: {balance:.1f} credits")


@credits_cmd.command("grant")
@click.argument("user_id")
@click.option("--amount", "-a", type=float, help="Credits to grant")
@click.option("--bonus", is_flag=True, help=f"Grant the one-time new user bonus ({NEW_USER_BONUS} credits)")
@click.option("--reason", default="manual_grant", show_default=True, help="Reason recorded on the row")
def grant_cmd(user_id: str, amount: float, bonus: bool, reason: str):
    """Grant free credits to a user"""
    if bonus == (amount is not None):
        raise click.UsageError("Pass exactly one of --amount or --bonus")
    if amount is not None and amount <= 0:
        raise click.UsageError("--amount must be positive")

    ledger = _ledger()

    async def _grant():
        if bonus:
            transaction = await ledger.grant_new_user_bonus(user_id)
        else:
            transaction = await ledger.grant(user_id, credits_to_units(amount), reason)
        return transaction, await ledger.get_balance_credits(user_id)

    transaction, balance = asyncio.run(_grant())
    theme = get_theme()
    if transaction is None:
        console.print(f"[{theme.pending}]{user_id} already received the new user bonus[/{theme.pending}]")
    else:
        console.print(
            f"[{theme.credit}]+{units_to_credits(transaction.amount):.1f}[/{theme.credit}] "
            f"credits to {user_id} ({transaction.trans_no})"
        )
    console.print(f"Balance: {balance:.1f} credits")


@credits_cmd.command("history")
@click.argument("user_id")
@click.option("--limit", "-n", default=20, show_default=True, help="Rows to show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def history_cmd(user_id: str, limit: int, as_json: bool):
    """Show a user's ledger rows, newest first"""
    rows = asyncio.run(_ledger().history(user_id, limit=limit))

    if as_json:
        click.echo(json.dumps([
            {**row.to_dict(), "amount": units_to_credits(row.amount)} for row in rows
        ], indent=2))
        return

    if not rows:
        console.print(f"[{get_theme().dimmed}]No transactions for {user_id}[/{get_theme().dimmed}]")
        return

    theme = get_theme()
    table = Table(title=f"Credit history: {user_id}", box=box.ROUNDED)
    table.add_column("When", style=theme.dimmed)
    table.add_column("Type", style=theme.label)
    table.add_column("Amount", justify="right")
    table.add_column("Reference")

    for row in rows:
        style = theme.debit if row.amount < 0 else theme.credit
        table.add_row(
            row.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            row.trans_type.value,
            f"[{style}]{units_to_credits(row.amount):+.1f}[/{style}]",
            row.order_no or row.trans_no,
        )
    console.print(table)
