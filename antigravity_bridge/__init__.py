"""Antigravity Bridge: OpenAI chat requests to Antigravity request envelopes."""

__version__ = "0.1.0"
