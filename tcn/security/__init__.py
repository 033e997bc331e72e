"""Audit trail and rate limiting."""
