"""FlowDeploy CLI - Subscription commands"""

from typing import Optional

import click
from rich.table import Table

from flowdeploy.base import ClientCommand
from flowdeploy.ui_components import SEVERITY_STYLES


class SubscriptionWarningsCommand(ClientCommand):
    """Show plan warnings (suspensions, scheduled deletions)."""

    async def execute_async(self) -> Optional[int]:
        result = await self.api.get_subscription_warnings()
        if result.is_failure:
            return self.fail_with(result.error)

        warnings = result.data

        if self.json_output:
            self.output_json(
                {
                    "has_warnings": warnings.has_warnings,
                    "warnings": [
                        {
                            "severity": w.severity,
                            "message": w.message,
                            "action_required": w.action_required,
                            "days_until_deletion": w.days_until_deletion,
                        }
                        for w in warnings.warnings
                    ],
                }
            )
            return 0

        self.show_header(title="Subscription", user=self.session.user.username)

        if not warnings.warnings:
            self.print_success("No subscription warnings")
            return 0

        for warning in warnings.warnings:
            style = SEVERITY_STYLES.get(warning.severity, "white")
            line = f"[{style}]● {warning.severity.upper()}[/{style}] {warning.message}"
            if warning.days_until_deletion is not None:
                line += f" [dim](deletion in {warning.days_until_deletion} days)[/dim]"
            self.console.print(line)

        if any(w.action_required for w in warnings.warnings):
            self.console.print()
            self.print_dim("Upgrade with: flowdeploy billing:order <plan>")
        return 0


class SubscriptionStatsCommand(ClientCommand):
    """Show account usage against the plan."""

    async def execute_async(self) -> Optional[int]:
        result = await self.api.get_stats()
        if result.is_failure:
            return self.fail_with(result.error)

        stats = result.data
        user = self.session.user

        if self.json_output:
            self.output_json({"plan": user.plan, "max_deployments": user.max_deployments, "stats": stats})
            return 0

        self.show_header(
            title="Usage",
            user=user.username,
            details={"Plan": user.plan, "Max deployments": user.max_deployments},
        )

        table = Table(show_header=True, header_style="bold cyan", padding=(0, 1))
        table.add_column("Metric", style="white")
        table.add_column("Value", style="cyan")
        for key, value in stats.items():
            table.add_row(key.replace("_", " "), str(value))
        self.console.print(table)
        return 0


@click.command(name="subscription:warnings")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def subscription_warnings(verbose, json_output):
    """Show subscription warnings"""
    SubscriptionWarningsCommand(verbose=verbose, json_output=json_output).run()


@click.command(name="subscription:stats")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def subscription_stats(verbose, json_output):
    """Show usage statistics"""
    SubscriptionStatsCommand(verbose=verbose, json_output=json_output).run()
