"""Helpers for presenting rides and reading recorded samples."""
