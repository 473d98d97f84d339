"""FlowDeploy CLI - Deployments commands"""

from typing import Optional

import click

from flowdeploy.base import ClientCommand
from flowdeploy.ui_components import build_deployments_table, format_status, format_timestamp


class DeploymentsListCommand(ClientCommand):
    """List deployments."""

    def __init__(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(verbose=verbose, json_output=json_output)
        self.limit = limit
        self.offset = offset

    async def execute_async(self) -> Optional[int]:
        result = await self.api.list_deployments(limit=self.limit, offset=self.offset)
        if result.is_failure:
            return self.fail_with(result.error)

        deployments = result.data

        if self.json_output:
            self.output_json({"deployments": [d.to_dict() for d in deployments]})
            return 0

        self.show_header(title="Deployments", user=self.session.user.username)

        if not deployments:
            self.print_dim("No deployments yet. Run: flowdeploy deploy --help")
            return 0

        self.console.print(build_deployments_table(deployments))
        return 0


class DeploymentsInfoCommand(ClientCommand):
    """Show one deployment."""

    def __init__(self, deployment_id: str, verbose: bool = False, json_output: bool = False):
        super().__init__(verbose=verbose, json_output=json_output)
        self.deployment_id = deployment_id

    async def execute_async(self) -> Optional[int]:
        result = await self.api.get_deployment(self.deployment_id)
        if result.is_failure:
            return self.fail_with(result.error)

        deployment = result.data

        if self.json_output:
            self.output_json({"deployment": deployment.to_dict()})
            return 0

        self.show_header(title="Deployment", deployment=deployment.name)

        rows = [
            ("ID", deployment.id),
            ("Status", format_status(deployment.status)),
            ("Subdomain", deployment.subdomain or "-"),
            ("Frontend", deployment.frontend_repo or "-"),
            ("Backend", deployment.backend_repo or "-"),
            ("Frontend URL", deployment.frontend_url or "-"),
            ("Backend URL", deployment.backend_url or "-"),
            ("Created", format_timestamp(deployment.created_at)),
            ("Updated", format_timestamp(deployment.updated_at)),
        ]
        if deployment.suspension_reason:
            rows.append(("Suspended", deployment.suspension_reason))
        if deployment.delete_scheduled_at:
            rows.append(("Deletion", format_timestamp(deployment.delete_scheduled_at)))

        for label, value in rows:
            self.console.print(f"  {label + ':':<14} {value}")
        return 0


class DeploymentsLogsCommand(ClientCommand):
    """Print stored build logs (or runtime process logs)."""

    def __init__(self, deployment_id: str, runtime: bool = False, verbose: bool = False, json_output: bool = False):
        super().__init__(verbose=verbose, json_output=json_output)
        self.deployment_id = deployment_id
        self.runtime = runtime

    async def execute_async(self) -> Optional[int]:
        if self.runtime:
            result = await self.api.get_pm2_logs(self.deployment_id)
        else:
            result = await self.api.get_deployment_logs(self.deployment_id)
        if result.is_failure:
            return self.fail_with(result.error)

        lines = result.data

        if self.json_output:
            self.output_json({"deployment_id": self.deployment_id, "logs": lines})
            return 0

        if not lines:
            self.print_dim("No logs available")
            return 0

        for line in lines:
            self.console.print(line, highlight=False, markup=False)
        return 0


class DeploymentActionCommand(ClientCommand):
    """Stop, restart or delete a deployment through the session controller."""

    ACTIONS = {
        "stop": "Stopped",
        "restart": "Restarted",
        "delete": "Deleted",
    }

    def __init__(
        self,
        action: str,
        deployment_id: str,
        yes: bool = False,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(verbose=verbose, json_output=json_output)
        self.action = action
        self.deployment_id = deployment_id
        self.yes = yes

    async def execute_async(self) -> Optional[int]:
        if self.action == "delete" and not self.yes and not self.json_output:
            if not self.confirm(f"Delete deployment {self.deployment_id}? This cannot be undone"):
                self.print_dim("Cancelled")
                return 0

        operation = getattr(self.controller, self.action)
        result = await operation(self.deployment_id)
        if result.is_failure:
            return self.fail_with(result.error)

        if self.json_output:
            self.output_json(
                {
                    "deployment_id": self.deployment_id,
                    "action": self.action,
                    "deployments": [d.to_dict() for d in self.controller.deployments],
                }
            )
            return 0

        self.print_success(f"{self.ACTIONS[self.action]} {self.deployment_id}")
        if self.controller.deployments:
            self.console.print()
            self.console.print(build_deployments_table(self.controller.deployments))
        return 0


@click.command(name="deployments:list")
@click.option("--limit", type=int, help="Maximum number of deployments")
@click.option("--offset", type=int, help="Skip the first N deployments")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def deployments_list(limit, offset, verbose, json_output):
    """List your deployments"""
    cmd = DeploymentsListCommand(limit=limit, offset=offset, verbose=verbose, json_output=json_output)
    cmd.run()


@click.command(name="deployments:info")
@click.argument("deployment_id")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def deployments_info(deployment_id, verbose, json_output):
    """Show deployment details"""
    cmd = DeploymentsInfoCommand(deployment_id, verbose=verbose, json_output=json_output)
    cmd.run()


@click.command(name="deployments:logs")
@click.argument("deployment_id")
@click.option("--runtime", is_flag=True, help="Show runtime (pm2) logs instead of build logs")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def deployments_logs(deployment_id, runtime, verbose, json_output):
    """Show deployment logs"""
    cmd = DeploymentsLogsCommand(deployment_id, runtime=runtime, verbose=verbose, json_output=json_output)
    cmd.run()


@click.command(name="deployments:stop")
@click.argument("deployment_id")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def deployments_stop(deployment_id, verbose, json_output):
    """Stop a running deployment"""
    DeploymentActionCommand("stop", deployment_id, verbose=verbose, json_output=json_output).run()


@click.command(name="deployments:restart")
@click.argument("deployment_id")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def deployments_restart(deployment_id, verbose, json_output):
    """Restart a deployment"""
    DeploymentActionCommand("restart", deployment_id, verbose=verbose, json_output=json_output).run()


@click.command(name="deployments:delete")
@click.argument("deployment_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def deployments_delete(deployment_id, yes, verbose, json_output):
    """Delete a deployment"""
    DeploymentActionCommand(
        "delete", deployment_id, yes=yes, verbose=verbose, json_output=json_output
    ).run()
