"""
Callflow Core
=============

Stateful rules engine for telephony contact flows.

This package provides the engine that drives each turn of a call:
- Per-session state storage with diff-based persistence
- Weighted rule activation over session state
- Rule set resolution and caching
- Caller account disambiguation
- Supervision of long-running asynchronous actions
"""

__version__ = "1.0.0"
