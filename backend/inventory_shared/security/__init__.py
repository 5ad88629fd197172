"""
Security module: JWT verification.
"""
