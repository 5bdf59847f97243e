"""
Level Genesis: Evolving Puzzle-Physics Levels Through Simulated Play

A framework for synthesizing playable levels with a genetic algorithm whose
fitness signal comes from letting each candidate settle inside a stateful,
tick-driven physics simulation.
"""

__version__ = "0.1.0"
