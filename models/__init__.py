"""
Models package for the Dining Arbiter simulator.
Contains resource slots, actors, run configuration and captured system state.
"""
