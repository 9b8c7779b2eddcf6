"""
session
=======

Experiment orchestration.

This subpackage provides:
- MultiStairHandler : runs several staircases in one trial loop, choosing
  which one goes next (sequential, random or fullRandom passes) and writing
  the chosen trial into the loop's trial list.
"""

from .multi_stair import MultiStairHandler, StaircaseStatus, StaircaseType

__all__ = ["MultiStairHandler", "StaircaseStatus", "StaircaseType"]
