"""FlowDeploy CLI - deploy GitHub repositories to FlowDeploy.cloud from the terminal"""

__version__ = "1.0.0"
