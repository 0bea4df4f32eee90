"""A live multiplayer quiz server over websockets, with in-memory game state."""

__version__ = "0.0.1"