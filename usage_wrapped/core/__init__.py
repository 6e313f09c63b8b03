"""
Core modules for Usage Wrapped.

This package contains source discovery, log scanning, usage reduction,
pricing, and the statistics merger.
"""
