"""Toss: keyboard-first image triage into Keep, Maybe and Yeet."""

__version__ = "0.1.0"
