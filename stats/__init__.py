"""Collaborators that consume engine events."""
