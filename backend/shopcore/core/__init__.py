"""
Core package for shared utilities.

Configuration, structured logging and the base exception hierarchy used
across the shop core services.
"""
