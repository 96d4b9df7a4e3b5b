"""
Control package for timed command sequences.
"""

from .sequencer import CommandSequencer

__all__ = ['CommandSequencer']
