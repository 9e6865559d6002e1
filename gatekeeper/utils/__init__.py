"""
Utility functions
"""

from gatekeeper.utils.timeutil import utcnow

__all__ = ["utcnow"]
