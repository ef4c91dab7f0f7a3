"""Preference persistence services."""
