"""CLI module for mcplink."""
