"""Shared helpers for the rental kernel."""
