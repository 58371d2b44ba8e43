"""
Algorithms package for the Dining Arbiter simulator.
Contains the admission gate and the matrix-based deadlock watchdog.
"""
