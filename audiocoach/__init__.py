"""Audiocoach listening analytics service."""
