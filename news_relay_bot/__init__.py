"""Telegram relay for recent RSS headlines."""
