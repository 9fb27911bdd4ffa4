"""Logging configuration and JSON response helpers."""
