"""
Usage Wrapped.

Summarizes historical assistant activity logs into a yearly or monthly
statistics snapshot.
"""

__version__ = "0.1.0"
