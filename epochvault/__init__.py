"""
epochvault - time-locked positions with decaying voting power and
epoch-based reward distribution.
"""

__version__ = "0.1.0"
