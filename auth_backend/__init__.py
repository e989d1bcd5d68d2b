"""
Auth Backend - accounts, sessions and player statistics for a multiplayer game client.
"""

__version__ = "1.0.0"
