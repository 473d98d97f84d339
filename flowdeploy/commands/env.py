"""FlowDeploy CLI - Env commands"""

from collections import Counter

import click
from rich.table import Table

from flowdeploy.base import BaseCommand
from flowdeploy.core.env_manager import EnvVarList


class EnvCheckCommand(BaseCommand):
    """Parse an env file the way deploy --env-file does and show the result."""

    def __init__(self, path: str, reveal: bool = False, verbose: bool = False, json_output: bool = False):
        super().__init__(verbose=verbose, json_output=json_output)
        self.path = path
        self.reveal = reveal

    def execute(self) -> None:
        env = EnvVarList()
        env.extend_from_file(self.path)

        counts = Counter(entry.key for entry in env)
        duplicates = sorted(key for key, count in counts.items() if count > 1)
        incomplete = [entry.key for entry in env if not entry.is_complete]
        env_map = env.to_env_map()

        if self.json_output:
            self.output_json(
                {
                    "file": self.path,
                    "variables": sorted(env_map),
                    "duplicates": duplicates,
                    "empty": incomplete,
                }
            )
            return

        self.show_header(title="Env Check", details={"File": self.path})

        if not len(env):
            self.print_warning("No variables found")
            return

        table = Table(show_header=True, header_style="bold cyan", padding=(0, 1))
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        table.add_column("", style="yellow")

        for entry in env:
            if self.reveal:
                env.toggle_reveal(entry.id)
            note = ""
            if entry.key in duplicates:
                note = "duplicate"
            if not entry.is_complete:
                note = "empty, skipped"
            table.add_row(entry.key, entry.display_value(), note)

        self.console.print(table)
        self.console.print()

        if duplicates:
            self.print_warning(f"Duplicate keys (last value wins): {', '.join(duplicates)}")
        self.print_success(f"{len(env_map)} variable(s) will be sent")


@click.command(name="env:check")
@click.argument("path", type=click.Path(exists=True, dir_okay=False), default=".env")
@click.option("--reveal", is_flag=True, help="Show values instead of masking them")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def env_check(path, reveal, verbose, json_output):
    """
    Check an env file before deploying

    \b
    Shows:
    - Parsed keys (values masked)
    - Duplicate keys
    - Entries that will be skipped
    """
    EnvCheckCommand(path, reveal=reveal, verbose=verbose, json_output=json_output).run()
