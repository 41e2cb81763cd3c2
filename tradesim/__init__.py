"""
Tradesim - Simulated Trading Bot Backend

Position & trade lifecycle engine with a FastAPI surface.
"""

__version__ = "1.0.0"
