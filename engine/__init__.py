"""Sliding-tile puzzle engine: board, move resolution, spawning and game state."""
