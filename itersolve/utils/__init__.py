"""Shared utility functions for the itersolve package."""
