"""Callers, guild directory, API keys and permission checks."""
