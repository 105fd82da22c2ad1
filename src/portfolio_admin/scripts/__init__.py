"""Operator scripts for the Portfolio Admin service."""
