"""Shared HTTP download helpers."""
