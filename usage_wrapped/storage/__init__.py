"""
Record types and readers for persisted inputs.
"""
