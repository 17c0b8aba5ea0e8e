"""Citizen certificate portal API."""
