"""
FlowDeploy CLI - UI Components & Branding
Standardized headers, tables and status styling
"""

from typing import Iterable, Optional

from rich.console import Console
from rich.table import Table

from flowdeploy.models.deployment import Deployment, DeploymentStatus, DeployStatus

LOGO = "flowdeploy"

# Color scheme
BRAND_COLOR = "cyan"
SUCCESS_COLOR = "green"
WARNING_COLOR = "yellow"
ERROR_COLOR = "red"
INFO_COLOR = "blue"

DEPLOYMENT_STATUS_STYLES = {
    DeploymentStatus.DEPLOYED: ("● deployed", SUCCESS_COLOR),
    DeploymentStatus.DEPLOYING: ("◌ deploying", WARNING_COLOR),
    DeploymentStatus.FAILED: ("✗ failed", ERROR_COLOR),
    DeploymentStatus.STOPPED: ("■ stopped", "dim"),
    DeploymentStatus.SUSPENDED: ("⏸ suspended", "color(208)"),
}

SESSION_STATUS_STYLES = {
    DeployStatus.IDLE: "dim",
    DeployStatus.DEPLOYING: WARNING_COLOR,
    DeployStatus.SUCCESS: SUCCESS_COLOR,
    DeployStatus.FAILED: ERROR_COLOR,
}

SEVERITY_STYLES = {
    "critical": ERROR_COLOR,
    "error": ERROR_COLOR,
    "warning": WARNING_COLOR,
    "info": INFO_COLOR,
}


def show_header(
    title: str,
    subtitle: Optional[str] = None,
    user: Optional[str] = None,
    deployment: Optional[str] = None,
    details: Optional[dict] = None,
    console: Optional[Console] = None,
):
    """
    Display a standardized FlowDeploy command header.

    Args:
        title: Main title (e.g., "Deploy", "Deployments")
        subtitle: Optional subtitle line
        user: Logged-in username (if applicable)
        deployment: Deployment name or id (if applicable)
        details: Additional key-value pairs to display
        console: Rich Console instance (creates new if None)

    Example:
        show_header(
            title="Deploy",
            user="octocat",
            details={"Frontend": "github.com/octocat/site"}
        )
    """
    if console is None:
        console = Console()

    prefix = f" [bold color(214)]{LOGO}[/bold color(214)] [dim]›[/dim]"

    console.print(f"{prefix} [bold white]{title}[/bold white]")

    if subtitle:
        console.print(f"{prefix} [dim]{subtitle}[/dim]")
    if user:
        console.print(f"{prefix} User: [cyan]{user}[/cyan]")
    if deployment:
        console.print(f"{prefix} Deployment: [cyan]{deployment}[/cyan]")
    if details:
        for key, value in details.items():
            console.print(f"{prefix} {key}: [cyan]{value}[/cyan]")

    console.print()


def format_status(status: DeploymentStatus) -> str:
    """Rich markup for a deployment status."""
    label, style = DEPLOYMENT_STATUS_STYLES.get(status, (status.value, "white"))
    return f"[{style}]{label}[/{style}]"


def format_timestamp(value: Optional[str]) -> str:
    if not value:
        return "-"
    return value.replace("T", " ").split(".")[0].replace("Z", "") + " UTC"


def build_deployments_table(deployments: Iterable[Deployment], title: str = "Deployments") -> Table:
    """Table of deployments, one row each."""
    table = Table(
        title=title,
        show_header=True,
        header_style="bold cyan",
        padding=(0, 1),
    )
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Status", no_wrap=True)
    table.add_column("URL", style="blue")
    table.add_column("Created", style="dim")

    for deployment in deployments:
        table.add_row(
            deployment.id,
            deployment.name,
            format_status(deployment.status),
            deployment.url or "-",
            format_timestamp(deployment.created_at),
        )

    return table
