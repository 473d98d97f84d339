"""FlowDeploy CLI - Auth commands"""

from typing import Optional

import click

from flowdeploy.base import ClientCommand
from flowdeploy.constants import FREE_PLAN, PURCHASABLE_PLANS


class AuthLoginCommand(ClientCommand):
    """Log in with email and password."""

    requires_auth = False

    def __init__(self, email: str, password: str, verbose: bool = False, json_output: bool = False):
        super().__init__(verbose=verbose, json_output=json_output)
        self.email = email
        self.password = password

    async def execute_async(self) -> Optional[int]:
        self.show_header(title="Log In", details={"Email": self.email})

        if not await self.session.login(self.email, self.password):
            return self.fail_with(self.session.last_error)

        return self._logged_in()

    def _logged_in(self) -> int:
        user = self.session.user
        if self.json_output:
            self.output_json({"user": user.to_dict()})
            return 0
        self.print_success(f"Logged in as {user.username} ({user.plan} plan)")
        self.print_dim(f"Credentials saved to {self.store.path}")
        return 0


class AuthSignupCommand(AuthLoginCommand):
    """Create an account."""

    def __init__(
        self,
        username: str,
        email: str,
        password: str,
        plan: str = FREE_PLAN,
        verbose: bool = False,
        json_output: bool = False,
    ):
        super().__init__(email, password, verbose=verbose, json_output=json_output)
        self.username = username
        self.plan = plan

    async def execute_async(self) -> Optional[int]:
        self.show_header(title="Sign Up", details={"Username": self.username, "Plan": self.plan})

        if not await self.session.signup(self.username, self.email, self.password, self.plan):
            return self.fail_with(self.session.last_error)

        return self._logged_in()


class AuthGithubCommand(AuthLoginCommand):
    """Exchange a GitHub OAuth code for a session."""

    def __init__(self, code: str, verbose: bool = False, json_output: bool = False):
        super().__init__("", "", verbose=verbose, json_output=json_output)
        self.code = code

    async def execute_async(self) -> Optional[int]:
        self.show_header(title="Log In with GitHub")

        if not await self.session.login_with_github(self.code):
            return self.fail_with(self.session.last_error)

        return self._logged_in()


class AuthLogoutCommand(ClientCommand):
    """Forget the stored session."""

    requires_auth = False

    async def execute_async(self) -> Optional[int]:
        if not self.session.restore():
            self.print_dim("Not logged in")
            return 0

        username = self.session.user.username
        self.session.logout()
        self.print_success(f"Logged out {username}")
        return 0


class AuthWhoamiCommand(ClientCommand):
    """Show the logged-in user."""

    async def execute_async(self) -> Optional[int]:
        user = self.session.user

        if self.json_output:
            self.output_json({"user": user.to_dict(), "stale": self.session.stale})
            return 0

        self.show_header(title="Account", user=user.username)
        self.console.print(f"  Email:           [cyan]{user.email}[/cyan]")
        self.console.print(f"  Plan:            [cyan]{user.plan}[/cyan]")
        self.console.print(f"  Max deployments: [cyan]{user.max_deployments}[/cyan]")
        if user.created_at:
            self.console.print(f"  Member since:    [dim]{user.created_at}[/dim]")
        if self.session.stale:
            self.console.print()
            self.print_warning("Could not reach the server, showing cached profile")
        return 0


class AuthApiKeyCommand(ClientCommand):
    """Show or rotate the API key."""

    def __init__(self, regenerate: bool = False, yes: bool = False, verbose: bool = False, json_output: bool = False):
        super().__init__(verbose=verbose, json_output=json_output)
        self.regenerate = regenerate
        self.yes = yes

    async def execute_async(self) -> Optional[int]:
        if self.regenerate:
            if not self.yes and not self.json_output:
                if not self.confirm("Regenerate API key? The current key stops working"):
                    self.print_dim("Cancelled")
                    return 0

            result = await self.session.regenerate_api_key()
            if result.is_failure:
                return self.fail_with(result.error)

        api_key = self.session.user.api_key
        if self.json_output:
            self.output_json({"api_key": api_key})
            return 0

        if not api_key:
            self.print_warning("No API key yet. Run: flowdeploy auth:api-key --regenerate")
            return 0

        if self.regenerate:
            self.print_success("API key regenerated")
        self.console.print(f"  [bold]{api_key}[/bold]")
        return 0


class AuthPasswordCommand(ClientCommand):
    """Change the account password."""

    def __init__(self, old_password: str, new_password: str, verbose: bool = False, json_output: bool = False):
        super().__init__(verbose=verbose, json_output=json_output)
        self.old_password = old_password
        self.new_password = new_password

    async def execute_async(self) -> Optional[int]:
        result = await self.session.change_password(self.old_password, self.new_password)
        if result.is_failure:
            return self.fail_with(result.error)

        self.print_success("Password changed")
        return 0


@click.command(name="auth:login")
@click.option("--email", "-e", prompt=True, help="Account email")
@click.option("--password", "-p", prompt=True, hide_input=True, help="Account password")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def auth_login(email, password, verbose, json_output):
    """
    Log in to FlowDeploy

    \b
    Example:
      flowdeploy auth:login --email me@example.com
    """
    cmd = AuthLoginCommand(email, password, verbose=verbose, json_output=json_output)
    cmd.run()


@click.command(name="auth:signup")
@click.option("--username", "-u", prompt=True, help="Username")
@click.option("--email", "-e", prompt=True, help="Account email")
@click.option(
    "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True, help="Password"
)
@click.option(
    "--plan",
    type=click.Choice([FREE_PLAN] + PURCHASABLE_PLANS),
    default=FREE_PLAN,
    show_default=True,
    help="Subscription plan",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def auth_signup(username, email, password, plan, verbose, json_output):
    """Create a FlowDeploy account"""
    cmd = AuthSignupCommand(
        username, email, password, plan=plan, verbose=verbose, json_output=json_output
    )
    cmd.run()


@click.command(name="auth:github")
@click.argument("code")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def auth_github(code, verbose, json_output):
    """
    Log in with a GitHub OAuth code

    \b
    The code is the ?code= parameter GitHub redirects back with.
    """
    cmd = AuthGithubCommand(code, verbose=verbose, json_output=json_output)
    cmd.run()


@click.command(name="auth:logout")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def auth_logout(verbose):
    """Log out and remove stored credentials"""
    cmd = AuthLogoutCommand(verbose=verbose)
    cmd.run()


@click.command(name="auth:whoami")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def auth_whoami(verbose, json_output):
    """Show the logged-in account"""
    cmd = AuthWhoamiCommand(verbose=verbose, json_output=json_output)
    cmd.run()


@click.command(name="auth:api-key")
@click.option("--regenerate", is_flag=True, help="Rotate the API key")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def auth_api_key(regenerate, yes, verbose, json_output):
    """Show or regenerate your API key"""
    cmd = AuthApiKeyCommand(regenerate=regenerate, yes=yes, verbose=verbose, json_output=json_output)
    cmd.run()


@click.command(name="auth:password")
@click.option("--old-password", prompt=True, hide_input=True, help="Current password")
@click.option(
    "--new-password", prompt=True, hide_input=True, confirmation_prompt=True, help="New password"
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def auth_password(old_password, new_password, verbose):
    """Change your password"""
    cmd = AuthPasswordCommand(old_password, new_password, verbose=verbose)
    cmd.run()
