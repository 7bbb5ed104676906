"""Loyalty program administration API."""
