"""
Persistence adapters for catalog reference data.
"""
