"""CLI console and color theme"""

import os
from dataclasses import dataclass

from rich.console import Console


@dataclass
class Theme:
    """CLI color theme configuration"""

    header: str = "bold blue"
    panel_border: str = "blue"
    label: str = "cyan"
    value: str = "white"
    dimmed: str = "dim"

    # Status
    completed: str = "bold green"
    failed: str = "bold red"
    running: str = "cyan"
    pending: str = "yellow"

    # Ledger
    credit: str = "green"
    debit: str = "red"


DEFAULT_THEME = Theme()
MONO_THEME = Theme(
    header="bold", panel_border="white", label="bold", value="none", dimmed="dim",
    completed="bold", failed="bold", running="none", pending="none",
    credit="none", debit="none",
)


def get_theme() -> Theme:
    """Monochrome when NO_COLOR is set, otherwise the default theme"""
    if os.environ.get("NO_COLOR"):
        return MONO_THEME
    return DEFAULT_THEME


def status_style(status: str) -> str:
    return getattr(get_theme(), status, get_theme().value)


console = Console()
