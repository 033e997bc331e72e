"""Banshares: the cross-guild ban propagation workflow.

The package provides:
- Models: banshares, crossposts, reports and per-guild settings
- Store: status-guarded atomic transitions over a file-backed document store
- Workflow: review transitions with compensation when the gateway fails
- Policy: autoban bitfield decoding and settings resolution
"""
