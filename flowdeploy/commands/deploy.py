"""FlowDeploy CLI - Deploy command"""

import asyncio
from typing import List, Optional, Tuple

import click

from flowdeploy.base import ClientCommand
from flowdeploy.core.env_manager import EnvVarList
from flowdeploy.models.deployment import DeployRequest, DeployStatus
from flowdeploy.models.results import SubmitOutcome, SubmitStatus
from flowdeploy.services import DeploymentSessionController


class DeployCommand(ClientCommand):
    """Submit a deployment and stream its build logs until it finishes."""

    def __init__(
        self,
        name: str,
        frontend_repo: Optional[str] = None,
        backend_repo: Optional[str] = None,
        env_file: Optional[str] = None,
        env_pairs: Tuple[str, ...] = (),
        frontend_description: Optional[str] = None,
        backend_description: Optional[str] = None,
        detach: bool = False,
        timeout: Optional[float] = None,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(verbose=verbose, json_output=json_output)
        self.name = name
        self.frontend_repo = frontend_repo
        self.backend_repo = backend_repo
        self.env_file = env_file
        self.env_pairs = list(env_pairs)
        self.frontend_description = frontend_description
        self.backend_description = backend_description
        self.detach = detach
        self.timeout = timeout
        self._printed_lines = 0

    def build_request(self) -> DeployRequest:
        """
        Collect env vars (file first, then --env pairs) into a request.

        Raises:
            ValueError: If an --env pair is malformed
        """
        env = EnvVarList()
        if self.env_file:
            added = env.extend_from_file(self.env_file)
            self.print_dim(f"Loaded {added} variable(s) from {self.env_file}")
        env.extend_from_pairs(self.env_pairs)

        return DeployRequest(
            name=self.name,
            frontend_repo=self.frontend_repo,
            backend_repo=self.backend_repo,
            env_vars=env.to_env_map(),
            frontend_description=self.frontend_description,
            backend_description=self.backend_description,
        )

    def _render(self, controller: DeploymentSessionController) -> None:
        """Print log lines appended since the last render."""
        lines: List[str] = controller.log_lines
        new_lines = lines[self._printed_lines :]
        self._printed_lines = len(lines)

        for line in new_lines:
            if self.logger:
                self.logger.log_output(line)
            if not self.json_output:
                style = "red" if line.startswith("FATAL") else "dim"
                self.console.print(f"  [{style}]{line}[/{style}]", highlight=False)

    def _rejected(self, outcome: SubmitOutcome) -> int:
        if outcome.status == SubmitStatus.BUSY:
            return self.fail("A deployment is already in progress")
        return self.fail_with(outcome.error)

    async def _watch(self, controller: DeploymentSessionController) -> DeployStatus:
        if self.json_output or self.verbose:
            return await controller.wait_until_settled(self.timeout)
        with self.console.status("[cyan]Deploying...[/cyan]", spinner="dots"):
            return await controller.wait_until_settled(self.timeout)

    async def execute_async(self) -> Optional[int]:
        try:
            request = self.build_request()
        except ValueError as e:
            return self.fail(str(e))

        self.show_header(
            title="Deploy",
            user=self.session.user.username,
            deployment=self.name,
            details={
                k: v
                for k, v in (
                    ("Frontend", self.frontend_repo),
                    ("Backend", self.backend_repo),
                    ("Env vars", len(request.env_vars) or None),
                )
                if v
            },
        )

        controller = self.controller

        # Current list feeds the free-plan check
        await controller.refresh_deployments()

        logger = self.init_logger(self.name, "deploy")
        controller.add_listener(self._render)

        if logger:
            logger.step("Submitting deployment")
        outcome = await controller.submit(request)
        if not outcome.is_accepted:
            return self._rejected(outcome)

        if logger:
            logger.success(f"Deployment created: {outcome.deployment_id}")

        if self.detach:
            if self.json_output:
                self.output_json({"deployment_id": outcome.deployment_id, "status": "deploying"})
            else:
                self.print_dim(f"Follow logs with: flowdeploy deployments:logs {outcome.deployment_id}")
            return 0

        if logger:
            logger.step("Building")

        try:
            status = await self._watch(controller)
        except asyncio.TimeoutError:
            await controller.cancel()
            return self.fail(
                f"Stopped watching after {self.timeout:g}s, deployment {outcome.deployment_id} is still running"
            )

        # Trailing logs, delayed disconnect and list refresh
        await controller.drain()

        session = controller.deploy_session
        if self.json_output:
            self.output_json(
                {
                    "deployment_id": session.deployment_id,
                    "status": session.status.value,
                    "url": session.url,
                    "error": session.error,
                    "logs": session.log_lines,
                },
            )
            return 0 if status == DeployStatus.SUCCESS else 1

        if status == DeployStatus.SUCCESS:
            if logger:
                logger.success("Deployment complete")
            self.console.print()
            self.print_success(f"Deployed [bold]{self.name}[/bold]")
            if session.url:
                self.console.print(f"  [blue]{session.url}[/blue]")
            return 0

        if logger:
            logger.log_error(session.error or "Deployment failed", context=f"Deployment: {session.deployment_id}")
        else:
            self.print_error(session.error or "Deployment failed")
        return 1


@click.command(name="deploy")
@click.option("--name", "-n", required=True, help="Deployment name")
@click.option("--frontend", "frontend_repo", help="Frontend repository URL")
@click.option("--backend", "backend_repo", help="Backend repository URL")
@click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Load environment variables from a .env file",
)
@click.option("--env", "-e", "env_pairs", multiple=True, help="KEY=VALUE (repeatable)")
@click.option("--frontend-description", help="Frontend description")
@click.option("--backend-description", help="Backend description")
@click.option("--detach", "-d", is_flag=True, help="Return after submission without streaming logs")
@click.option("--timeout", type=float, help="Give up watching after N seconds")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def deploy(
    name,
    frontend_repo,
    backend_repo,
    env_file,
    env_pairs,
    frontend_description,
    backend_description,
    detach,
    timeout,
    verbose,
    json_output,
):
    """
    Deploy a frontend and/or backend repository

    \b
    Examples:
      flowdeploy deploy -n shop --frontend https://github.com/me/shop-web
      flowdeploy deploy -n api --backend https://github.com/me/api --env-file .env
      flowdeploy deploy -n api --backend https://github.com/me/api -e PORT=8080
    """
    cmd = DeployCommand(
        name=name,
        frontend_repo=frontend_repo,
        backend_repo=backend_repo,
        env_file=env_file,
        env_pairs=env_pairs,
        frontend_description=frontend_description,
        backend_description=backend_description,
        detach=detach,
        timeout=timeout,
        verbose=verbose,
        json_output=json_output,
    )
    cmd.run()
