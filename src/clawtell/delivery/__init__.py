"""
Package: delivery
Description: Message delivery core for ClawTell agents.

Provides the resilient request executor and relay client for outbound
calls, and the reconciler, poll loop and gateway registration for inbound
delivery.
"""
