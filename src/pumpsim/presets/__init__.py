"""Packaged profile presets."""
