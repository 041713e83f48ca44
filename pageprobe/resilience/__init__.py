"""Resilience helpers for network operations."""
