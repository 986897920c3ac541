"""Keep a primary objective and side quests in sync with recent shell history."""

__version__ = "0.1.0"
