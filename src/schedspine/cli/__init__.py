"""schedspine CLI (typer + rich)."""
