"""
Logging for the FlowDeploy CLI

Two channels:
- Library diagnostics (flowdeploy.* loggers) go to stderr through RichHandler
- Each deploy run gets its own log file with the full build output
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

from rich.console import Console
from rich.logging import RichHandler

from flowdeploy.constants import LOG_DATE_FORMAT, LOG_TIME_FORMAT

console = Console()

ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")

RULE = "=" * 80
ALERT_RULE = "!" * 80


def setup_logging(verbose: bool = False) -> None:
    """
    Route library logging (flowdeploy.*) to the console.

    Quiet by default; --verbose shows DEBUG records through RichHandler.
    """
    handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
    package_logger = logging.getLogger("flowdeploy")
    package_logger.handlers = [handler]
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.propagate = False


class DeployLogger:
    """
    Log file for one CLI operation, at logs/<name>/<date>/<time>_<operation>.log

    Streamed build output goes only to the file (the command renders its own
    console view); steps, successes and errors are echoed to the console
    unless running verbose.
    """

    def __init__(
        self,
        logs_dir: Path,
        name: str,
        operation: str,
        verbose: bool = False,
        terminal: Optional[Console] = None,
    ):
        self.name = name
        self.operation = operation
        self.verbose = verbose
        self.console = terminal or console
        self.current_step = ""
        self.has_errors = False

        started = datetime.now()
        run_dir = Path(logs_dir) / name / started.strftime(LOG_DATE_FORMAT)
        run_dir.mkdir(parents=True, exist_ok=True)

        self.log_path: Path = run_dir / f"{started.strftime(LOG_TIME_FORMAT)}_{operation}.log"
        self.log_file: Optional[TextIO] = open(self.log_path, "w", buffering=1)
        self._write(
            f"\n{RULE}\nFlowDeploy Deployment Log\n{RULE}\n"
            f"Deployment: {name}\nOperation: {operation}\n"
            f"Started: {started.isoformat()}\n{RULE}\n\n"
        )

    def _write(self, text: str) -> None:
        if self.log_file:
            self.log_file.write(text)
            self.log_file.flush()

    def log(self, message: str, level: str = "INFO"):
        """Append a timestamped line; verbose runs echo it to the console."""
        self._write(f"[{datetime.now():%H:%M:%S}] [{level}] {message}\n")

        if self.verbose:
            style = {"ERROR": "red", "WARNING": "yellow", "DEBUG": "dim"}.get(level)
            self.console.print(f"[{style}]{message}[/{style}]" if style else message)

    def log_output(self, output: str, stream: str = "build"):
        """Append streamed output, one prefixed line per input line, ANSI codes removed."""
        if not output:
            return
        text = ANSI_ESCAPE.sub("", output)
        self._write("".join(f"  [{stream}] {line}\n" for line in text.splitlines() or [text]))

    def log_error(self, error: str, context: Optional[str] = None):
        """Record an error block in the file and show it on the console."""
        self.has_errors = True

        block = f"\n{ALERT_RULE}\nERROR OCCURRED\n{ALERT_RULE}\n{error}\n"
        if context:
            block += f"\nContext: {context}\n"
        self._write(block + f"{ALERT_RULE}\n\n")

        if not self.verbose:
            self.console.print()
        self.console.print(f"[bold red]✗ {error}[/bold red]")
        if context:
            self.console.print(f"  [color(208)]{context}[/color(208)]")

    def step(self, step_name: str):
        if self.current_step and not self.verbose:
            self.console.print()
        self.current_step = step_name
        self.log(f"Step: {step_name}")

        if not self.verbose:
            self.console.print(f"[color(214)]▶[/color(214)] [white]{step_name}[/white]")

    def success(self, message: str):
        self.log(message)
        if not self.verbose:
            self.console.print(f"  [dim]✓ {message}[/dim]")

    def warning(self, message: str):
        self.log(message, "WARNING")
        if not self.verbose:
            self.console.print(f"  [yellow]⚠[/yellow] [dim]{message}[/dim]")

    def close(self):
        """Write the status footer and close the file (idempotent)."""
        if not self.log_file:
            return
        status = "FAILED" if self.has_errors else "SUCCESS"
        self._write(f"\n{RULE}\nCompleted: {datetime.now().isoformat()}\nStatus: {status}\n{RULE}\n")
        self.log_file.close()
        self.log_file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, _exc_tb):
        if exc_type is not None and not issubclass(exc_type, (SystemExit, KeyboardInterrupt)):
            self.log_error(str(exc_val) or "Operation failed", context=exc_type.__name__)
        self.close()
        return False
