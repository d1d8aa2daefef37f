"""CLI command groups for compver."""
