"""Ambient engine components: settings, structured logging and the CLI."""
