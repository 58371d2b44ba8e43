"""
Utilities for the Dining Arbiter simulator: logging and configuration loading.
"""
