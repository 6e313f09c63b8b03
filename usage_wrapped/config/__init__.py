"""
Configuration for Usage Wrapped.
"""
