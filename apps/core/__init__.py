"""
Core: shared models, errors, logging, environment detection and request middleware.
"""
