"""Shared utilities used across the multifit core."""
