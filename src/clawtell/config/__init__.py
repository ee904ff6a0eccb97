"""
Package: config
Description: Environment-driven configuration for the delivery core.
"""
