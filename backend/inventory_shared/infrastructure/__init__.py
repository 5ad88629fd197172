"""
Infrastructure module: Database sessions, request correlation and Redis.
"""
