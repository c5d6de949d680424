"""Cached zip bundles of a room's files, one per category."""
