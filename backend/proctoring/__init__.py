"""Proctoring engine: violation tracking, fullscreen enforcement and auto-submission."""
