"""Entry point for running mcplink as a module: python -m mcplink."""

from mcplink.cli.commands import app

if __name__ == "__main__":
    app()
