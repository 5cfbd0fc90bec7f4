"""Command-line interface for Denorm Advisor."""
