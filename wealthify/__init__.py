"""
Wealthify - Source Package

Achievement engine for the Wealthify personal-finance tracker.
Turns a user's financial activity into unlockable achievements.

DESIGN PRINCIPLES:
1. The achievement catalog is code, not data
2. Every unlock happens at most once per user
3. Storage is the source of truth for what is unlocked
4. Failures delay an unlock, they never break the app
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Wealthify Team"
