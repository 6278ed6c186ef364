"""Streaming chat client for Agent Playground backends."""

__version__ = "0.1.0"
