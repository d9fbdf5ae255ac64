"""
Scavenger Hunt - Real-time camera object scavenger hunt game engine

A classifier inspects camera frames; the game session decides frame by
frame whether the current target object has been found.
"""

__version__ = "1.0.0"
__author__ = "Scavenger Hunt Team"
