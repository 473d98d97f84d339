"""FlowDeploy CLI core helpers: configuration and env var handling."""
