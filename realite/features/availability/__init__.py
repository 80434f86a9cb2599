"""
Availability feature: busy-window intersection for one user.
"""

from .resolver import AvailabilityResolver, AvailabilityResult, Interval

__all__ = ["AvailabilityResolver", "AvailabilityResult", "Interval"]
