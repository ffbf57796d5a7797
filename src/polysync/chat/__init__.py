"""Conversation log models and persistence."""
