"""Utilities - authentication and time helpers."""
