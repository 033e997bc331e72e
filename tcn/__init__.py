"""TCN: backend of record for the cross-server banshare federation.

The package provides:
- Banshares: submission, review, publication, rescission and per-guild execution
- Settings: per-guild banshare configuration and autoban policy decoding
- Auth: API-key identities, guild memberships and permission checks
- Security: audit logging and request rate limiting
"""

__version__ = "0.1.0"
