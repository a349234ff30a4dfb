"""Argument Confidence Network backend."""
