"""
Module: auth
Description: Webhook request authentication and admission control.

This package contains:
- signature: HMAC-SHA256 webhook signatures
- rate_limit: Per-source fixed-window rate limiting
"""

__all__ = []
