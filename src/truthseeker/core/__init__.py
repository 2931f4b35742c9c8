"""Core data models, media encoding and the local case record."""
