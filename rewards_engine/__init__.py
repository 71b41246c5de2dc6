"""
Rewards Engine - Source Package

The progression and rewards engine of a personal-finance tracker:
daily spins, logging streaks, savings goals and coin-based levels.

DESIGN PRINCIPLES:
1. Rules are pure functions, persistence happens in one place
2. Every grant is gated by a persisted check (grant once)
3. Time comes from an injected clock
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Rewards Engine Team"
