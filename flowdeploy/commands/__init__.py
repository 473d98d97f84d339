"""FlowDeploy CLI commands"""
