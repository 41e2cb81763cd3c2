"""Core application plumbing: logging, response envelopes, dependencies."""
