"""Human-facing CLI output on stderr.

stdout belongs to the MCP protocol when serving, so even CLI messages go
to stderr.
"""

from __future__ import annotations

from typing import Any

from rich.console import Console

_console = Console(stderr=True, highlight=False)


def header(title: str) -> None:
    _console.print(f"\n[bold]{title}[/bold]")
    _console.rule(style="dim")


def key_value(key: str, value: Any) -> None:
    _console.print(f"  [cyan]{key:<22}[/cyan] {value}")


def info(message: str) -> None:
    _console.print(f"[blue]info[/blue] {message}")


def success(message: str) -> None:
    _console.print(f"[green]ok[/green] {message}")


def warning(message: str) -> None:
    _console.print(f"[yellow]warning[/yellow] {message}")


def error(message: str) -> None:
    _console.print(f"[red]error[/red] {message}")
