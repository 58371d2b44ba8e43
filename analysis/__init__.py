"""
Analysis package for the Dining Arbiter simulator.
Contains the event log, run metrics and the event log audit.
"""
