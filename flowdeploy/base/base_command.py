"""
Base Command Class

Shared plumbing for every FlowDeploy command: config, console output,
per-operation log files and the exit-code contract.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console

from flowdeploy.core.config_loader import ClientConfig, ConfigLoader
from flowdeploy.exceptions import AuthError, FlowDeployError
from flowdeploy.logger import DeployLogger, setup_logging
from flowdeploy.ui_components import show_header


class BaseCommand(ABC):
    """
    Root of the command hierarchy.

    Subclasses implement execute(); run() wraps it and maps failures to exit codes:
    - FlowDeployError and unexpected exceptions -> 1
    - Ctrl-C -> 130
    """

    def __init__(
        self,
        verbose: bool = False,
        json_output: bool = False,
        config_dir: Optional[Path] = None,
    ):
        self.verbose = verbose
        self.json_output = json_output
        setup_logging(verbose)
        self.console = Console()
        self.config_loader = ConfigLoader(config_dir)
        self.logger: Optional[DeployLogger] = None
        self._config: Optional[ClientConfig] = None

    @property
    def config(self) -> ClientConfig:
        """Resolved client config (loaded on first access)."""
        if self._config is None:
            self._config = self.config_loader.load()
        return self._config

    def init_logger(self, name: str, operation: str) -> Optional[DeployLogger]:
        """
        Open a log file for this run under <config_dir>/logs.

        JSON mode writes no log file and returns None.
        """
        if self.json_output:
            return None
        self.logger = DeployLogger(
            self.config.logs_dir,
            name,
            operation,
            verbose=self.verbose,
            terminal=self.console,
        )
        return self.logger

    # =========================================================================
    # Output
    # =========================================================================

    def output_json(self, data: Dict[str, Any]) -> None:
        """Print a JSON document on stdout (datetimes and paths stringified)."""
        print(json.dumps(data, indent=2, default=str))

    def show_header(
        self,
        title: str,
        subtitle: Optional[str] = None,
        user: Optional[str] = None,
        deployment: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        # Headers are decoration; --json and --verbose output stay clean
        if self.verbose or self.json_output:
            return
        show_header(
            title=title,
            subtitle=subtitle,
            user=user,
            deployment=deployment,
            details=details,
            console=self.console,
        )

    def _say(self, markup: str) -> None:
        if not self.json_output:
            self.console.print(markup)

    def print_success(self, message: str) -> None:
        self._say(f"[green]✓ {message}[/green]")

    def print_error(self, message: str) -> None:
        self._say(f"[red]✗ {message}[/red]")

    def print_warning(self, message: str) -> None:
        self._say(f"[yellow]⚠ {message}[/yellow]")

    def print_dim(self, message: str) -> None:
        self._say(f"[dim]{message}[/dim]")

    def confirm(self, question: str, default: bool = False) -> bool:
        """Yes/no prompt on stdin; an empty answer returns default."""
        hint = "Y/n" if default else "y/N"
        self.console.print(f"{question} [bold]\\[{hint}][/bold]: ", end="")
        reply = input().strip().lower()
        if not reply:
            return default
        return reply in ("y", "yes")

    def report_error(self, error: FlowDeployError) -> None:
        """Show a domain error without exiting (JSON-aware)."""
        if self.json_output:
            self.output_json({"error": error.message, "details": {"context": error.context}})
            return
        if self.logger:
            self.logger.log_error(error.message, context=error.context)
            return
        self.print_error(error.message)
        if error.context:
            self.print_dim(error.context)

    def exit_with_error(self, message: str, code: int = 1) -> None:
        """Report a plain message and leave with code."""
        if self.json_output:
            self.output_json({"error": message})
        else:
            self.print_error(message)
        raise SystemExit(code)

    # =========================================================================
    # Execution
    # =========================================================================

    @abstractmethod
    def execute(self, **kwargs) -> None:
        """Command body."""

    def _logs_hint(self) -> None:
        if self.logger:
            self.console.print(f"[dim]Log file:[/dim] {self.logger.log_path}\n")

    def _crash(self, label: str, error: BaseException) -> None:
        self.console.print(f"\n[bold red]✗ {label}:[/bold red] {error}\n")
        if self.logger:
            self.logger.log_error(f"{label}: {error}")
        self._logs_hint()

    def run(self, **kwargs) -> None:
        """Execute and translate the outcome into a process exit code."""
        try:
            self.execute(**kwargs)
        except SystemExit:
            raise
        except KeyboardInterrupt:
            self.console.print("\n[yellow]⚠ Cancelled[/yellow]")
            self._logs_hint()
            raise SystemExit(130)
        except FlowDeployError as e:
            self.report_error(e)
            if not isinstance(e, AuthError):
                self._logs_hint()
            raise SystemExit(1)
        except PermissionError as e:
            self._crash("Permission denied", e)
            raise SystemExit(1)
        except Exception as e:
            self._crash(type(e).__name__, e)
            raise SystemExit(1)
        finally:
            if self.logger:
                self.logger.close()
