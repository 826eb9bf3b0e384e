"""Offline Edge Cache service."""
