"""
Lodestar - round-by-round deployment automation for ORE v3 style mining.

Watches the board, settles the previous round when the program demands it,
and deploys the configured stake across the selected squares. One cycle per
round, one transaction per cycle.
"""

__version__ = "0.1.0"
