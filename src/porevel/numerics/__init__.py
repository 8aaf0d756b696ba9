"""Discretization-related functionality."""
