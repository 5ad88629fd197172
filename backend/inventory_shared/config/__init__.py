"""
Configuration module: Settings, logging, constants.
"""
