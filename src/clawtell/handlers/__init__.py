"""
Module: handlers
Description: Package initialization for HTTP handlers.

This package contains the service's HTTP surface:
- webhook: Webhook receiver and path router for relay pushes
- status: Per-account delivery status endpoints
"""

__all__ = []
