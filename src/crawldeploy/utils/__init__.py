"""Helpers shared by the deployment core and the CLI (config, modes)."""
