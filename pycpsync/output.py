"""Console output for pycpsync."""

import json
import sys
import threading
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

# Action verbs and their colours
ACTION_STYLES: dict[str, str] = {
    "PUSH": "bold plum2",
    "PULL": "bold deep_sky_blue1",
    "MOVE": "bold plum2",
    "SKIP": "grey62",
    "DELETE": "bold yellow1",
    "PAUSE": "bold orange1",
    "RESUME": "bold green3",
    "ERROR": "bold red1",
}


class OutputFormatter:
    """Renders status and action lines, or JSON lines with ``json_output``.

    Safe to call from the watcher, consumer, poller and monitor threads.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)
        self._lock = threading.Lock()

    def _emit_json(self, payload: dict[str, Any]) -> None:
        with self._lock:
            sys.stdout.write(json.dumps(payload) + "\n")
            sys.stdout.flush()

    def print(self, message: str = "") -> None:
        if self.quiet or self.json_output:
            return
        with self._lock:
            self.console.print(message)

    def info(self, message: str) -> None:
        if self.quiet:
            return
        if self.json_output:
            self._emit_json({"level": "info", "message": message})
            return
        with self._lock:
            self.console.print(f"[deep_sky_blue2]{escape(message)}[/]")

    def success(self, message: str) -> None:
        if self.quiet:
            return
        if self.json_output:
            self._emit_json({"level": "success", "message": message})
            return
        with self._lock:
            self.console.print(f"[green3]{escape(message)}[/]")

    def warning(self, message: str) -> None:
        if self.json_output:
            self._emit_json({"level": "warning", "message": message})
            return
        with self._lock:
            self.err_console.print(f"[yellow1]{escape(message)}[/]")

    def error(self, message: str) -> None:
        """Errors are shown even in quiet mode."""
        if self.json_output:
            self._emit_json({"level": "error", "message": message})
            return
        with self._lock:
            self.err_console.print(f"[red1]{escape(message)}[/]")

    def action(self, verb: str, subject: str, meta: Optional[str] = None) -> None:
        """Print one synchronization action, e.g. ``PUSH lib/foo.py (reason)``."""
        if self.json_output:
            self._emit_json({"action": verb, "path": subject, "detail": meta})
            return
        if self.quiet and verb != "ERROR":
            return
        style = ACTION_STYLES.get(verb, "bold")
        line = f"[{style}]{verb:<6}[/] [white]{escape(subject)}[/]"
        if meta:
            line += f" [grey62]({escape(meta)})[/]"
        with self._lock:
            self.console.print(line)

    def banner(self, title: str) -> None:
        if self.quiet or self.json_output:
            return
        with self._lock:
            self.console.print(
                Panel(f"[bold deep_sky_blue1]{escape(title)}[/]", expand=False)
            )

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print labelled key/value lines under a title."""
        if self.json_output:
            self._emit_json({"title": title, **dict(items)})
            return
        if self.quiet:
            return
        table = Table(title=title, show_header=False, box=None)
        table.add_column(style="bold")
        table.add_column()
        for key, value in items:
            table.add_row(key, value)
        with self._lock:
            self.console.print(table)

    def table(self, title: str, columns: list[str], rows: list[list[str]]) -> None:
        if self.json_output:
            self._emit_json(
                {"title": title, "rows": [dict(zip(columns, r)) for r in rows]}
            )
            return
        table = Table(title=title)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*row)
        with self._lock:
            self.console.print(table)
