"""
tournament_hub
Esports tournament registration, team management and admin moderation API.
"""

__version__ = "1.0.0"
