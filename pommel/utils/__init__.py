"""Utility functions and classes for pommel."""
