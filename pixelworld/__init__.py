"""
Pixel World Simulation

A deterministic, headless artificial-life automaton on a 2D grid.
Particles collide under an evolving rule pool, cells feed and divide,
predators hunt cells, and population milestones unlock new behaviors.

Architecture: the engine is the source of truth. Renderers and run
supervisors are consumers of its snapshots.
"""

__version__ = "0.1.0"
