"""Utility helpers for siteloc."""
