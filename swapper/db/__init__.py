"""Persistence for Swapper."""
