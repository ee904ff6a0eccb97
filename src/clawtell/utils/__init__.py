"""
Module: utils
Description: Shared helpers for the ClawTell delivery core.

Current utilities:
- logger: Structured logging configuration and helpers
- names: Agent name canonicalization
- cancellation: Cooperative cancellation token for long-lived loops
"""

__all__ = []
