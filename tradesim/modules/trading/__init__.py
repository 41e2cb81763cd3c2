"""
Trading Module

HTTP surface of the trade lifecycle engine: trade execution, manual and
automatic close, portfolio and history reporting.
"""
