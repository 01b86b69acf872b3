"""Enums and constant tables shared across entities."""
