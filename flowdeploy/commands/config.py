"""FlowDeploy CLI - Config commands"""

import click

from flowdeploy.base import BaseCommand


class ConfigShowCommand(BaseCommand):
    """Show the resolved client configuration."""

    def execute(self) -> None:
        data = self.config.to_dict()

        if self.json_output:
            self.output_json(data)
            return

        self.show_header(title="Configuration", details={"File": self.config.config_path})
        for key, value in data.items():
            self.console.print(f"  {key + ':':<24} [cyan]{value}[/cyan]")

        env_file = self.config_loader.find_env_file()
        if env_file:
            self.console.print()
            self.print_dim(f"FLOWDEPLOY_* overrides read from {env_file}")


class ConfigSetCommand(BaseCommand):
    """Persist a config value to config.yml."""

    def __init__(self, key_value: str, verbose: bool = False):
        super().__init__(verbose=verbose)
        self.key_value = key_value

    def execute(self) -> None:
        try:
            key, value = self.key_value.split("=", 1)
        except ValueError:
            self.exit_with_error("Invalid format! Use: KEY=VALUE")

        path = self.config_loader.set_value(key.strip(), value.strip())
        self.print_success(f"Set {key.strip()} in {path}")


@click.command(name="config:show")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
def config_show(verbose, json_output):
    """Show client configuration"""
    ConfigShowCommand(verbose=verbose, json_output=json_output).run()


@click.command(name="config:set")
@click.argument("key_value")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def config_set(key_value, verbose):
    """
    Set a configuration value

    \b
    Examples:
      flowdeploy config:set api_url=https://flowdeploy.cloud/api
      flowdeploy config:set request_timeout=60
    """
    ConfigSetCommand(key_value, verbose=verbose).run()
