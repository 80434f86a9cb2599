"""
Domain subpackage for the dating feature.
"""

from .models import DatingGender, DatingProfile, DatingProfileStatus, MissingRequirement

__all__ = [
    "DatingGender",
    "DatingProfile",
    "DatingProfileStatus",
    "MissingRequirement",
]
