"""Adapters for external collaborators: market data and LLM providers."""
