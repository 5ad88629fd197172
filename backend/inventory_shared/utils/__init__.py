"""
Utilities module: Exceptions.
"""
