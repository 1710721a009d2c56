"""Console output helpers built on rich."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.text import Text


_console: Optional[Console] = None

STATUS_SYMBOLS = {
    "success": "✓",
    "error": "✗",
    "warning": "⚠",
    "info": "ℹ",
}


def _get_console() -> Console:
    """Return the shared console, created lazily so tests can capture stdout."""
    global _console
    if _console is None:
        _console = Console(highlight=False)
    return _console


def _reset_console() -> None:
    global _console
    _console = None


def _rich_echo(message: str, style: Optional[str] = None, symbol: Optional[str] = None) -> None:
    """Print a message with an optional style and status symbol."""
    if symbol and symbol in STATUS_SYMBOLS:
        message = f"{STATUS_SYMBOLS[symbol]} {message}"
    _get_console().print(message, style=style, markup=False)


def _rich_success(message: str, symbol: Optional[str] = "success") -> None:
    _rich_echo(message, style="green", symbol=symbol)


def _rich_error(message: str, symbol: Optional[str] = "error") -> None:
    _rich_echo(message, style="red", symbol=symbol)


def _rich_warning(message: str, symbol: Optional[str] = "warning") -> None:
    _rich_echo(message, style="yellow", symbol=symbol)


def _rich_info(message: str, symbol: Optional[str] = None) -> None:
    _rich_echo(message, style="cyan", symbol=symbol)


def _rich_panel(content: str, title: Optional[str] = None, style: str = "cyan") -> None:
    """Print content inside a bordered panel."""
    _get_console().print(Panel(Text(content), title=title, border_style=style))
