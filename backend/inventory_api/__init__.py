"""
Branch inventory REST API.
"""
