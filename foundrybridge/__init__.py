"""
FoundryBridge - exposes a FoundryVTT world to AI-assistant tool calls.

This package authenticates against a FoundryVTT server, keeps an in-memory
snapshot of the world, and answers read queries (search, lookup, active scene,
active combat, summaries) from that snapshot.
"""

__version__ = "0.1.0"
