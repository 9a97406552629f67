"""Core module for multifit - data models, peak shape models and fitting logic."""
