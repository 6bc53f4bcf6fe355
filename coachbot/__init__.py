"""Coachbot — an authenticated conversational backend for an LLM coach."""

__version__ = "0.1.0"
