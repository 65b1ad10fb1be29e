"""
Output Module

Committed score records and their JSON/CSV export.
"""

from .store import OutputStore

__all__ = ['OutputStore']
