"""FlowDeploy CLI - Main entry point"""

import functools
import os
import sys

import rich_click as click
from click.exceptions import ClickException, UsageError
from rich.console import Console

from flowdeploy import __version__
from flowdeploy.commands.auth import (
    auth_login,
    auth_signup,
    auth_github,
    auth_logout,
    auth_whoami,
    auth_api_key,
    auth_password,
)
from flowdeploy.commands.deploy import deploy
from flowdeploy.commands.deployments import (
    deployments_list,
    deployments_info,
    deployments_logs,
    deployments_stop,
    deployments_restart,
    deployments_delete,
)
from flowdeploy.commands.subscription import subscription_warnings, subscription_stats
from flowdeploy.commands.billing import billing_order, billing_verify
from flowdeploy.commands.env import env_check
from flowdeploy.commands.config import config_show, config_set

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.MAX_WIDTH = 100
click.rich_click.STYLE_COMMAND = "bold cyan"
click.rich_click.STYLE_OPTION = "bold green"
click.rich_click.STYLE_USAGE = "bold cyan"
click.rich_click.STYLE_OPTIONS_PANEL_BORDER = "dim cyan"
click.rich_click.STYLE_COMMANDS_PANEL_BORDER = "dim cyan"
click.rich_click.ERRORS_EPILOGUE = ""

console = Console()

BANNER = """
[bold cyan]FlowDeploy[/bold cyan] [dim]v{version}[/dim]
[white]Deploy GitHub repositories to FlowDeploy.cloud in one command[/white]
"""


def handle_cli_errors(func):
    """Turn click and unexpected errors into a short message and an exit code."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except UsageError as e:
            console.print(f"\n[bold red]✗[/bold red] {e.format_message()}")
            command = e.ctx.command.name if e.ctx and e.ctx.command else None
            if command:
                console.print(f"[dim]See:[/dim] [cyan]flowdeploy {command} --help[/cyan]\n")
            sys.exit(2)
        except ClickException as e:
            e.show()
            sys.exit(e.exit_code)
        except KeyboardInterrupt:
            console.print("\n[yellow]⚠ Cancelled[/yellow]")
            sys.exit(130)
        except Exception as e:
            console.print(f"\n[bold red]✗ {type(e).__name__}:[/bold red] {e}\n")
            if os.environ.get("FLOWDEPLOY_DEBUG"):
                console.print_exception()
            else:
                console.print("[dim]Set FLOWDEPLOY_DEBUG=1 for a traceback.[/dim]\n")
            sys.exit(1)

    return wrapper


@click.group()
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context) -> None:
    """
    FlowDeploy - Deploy frontend and backend repositories from the terminal.

    \b
    Quick Start:
      flowdeploy auth:signup                       # Create an account
      flowdeploy deploy -n shop --frontend <repo>  # Deploy and watch logs
      flowdeploy deployments:list                  # See what is running

    \b
    Managing deployments:
      flowdeploy deployments:logs <id>     # Stored build logs
      flowdeploy deployments:restart <id>  # Restart
      flowdeploy deployments:delete <id>   # Delete

    \b
    Account:
      flowdeploy auth:whoami               # Current user & plan
      flowdeploy subscription:warnings     # Suspensions, scheduled deletions
      flowdeploy billing:order pro         # Upgrade
    """
    if ctx.invoked_subcommand is None:
        console.print(BANNER.format(version=__version__))
        console.print("[yellow]Run 'flowdeploy --help' for usage[/yellow]\n")


# Register commands (Heroku-style with colons)
cli.add_command(auth_login)
cli.add_command(auth_signup)
cli.add_command(auth_github)
cli.add_command(auth_logout)
cli.add_command(auth_whoami)
cli.add_command(auth_api_key)
cli.add_command(auth_password)
cli.add_command(deploy)
cli.add_command(deployments_list)
cli.add_command(deployments_info)
cli.add_command(deployments_logs)
cli.add_command(deployments_stop)
cli.add_command(deployments_restart)
cli.add_command(deployments_delete)
cli.add_command(subscription_warnings)
cli.add_command(subscription_stats)
cli.add_command(billing_order)
cli.add_command(billing_verify)
cli.add_command(env_check)
cli.add_command(config_show)
cli.add_command(config_set)


@handle_cli_errors
def main():
    """Main entry point with error handling."""
    cli()


if __name__ == "__main__":
    main()
