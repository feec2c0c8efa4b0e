"""Shared geodesy, data types, configuration and logging helpers."""
