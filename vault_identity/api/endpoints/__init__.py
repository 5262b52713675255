"""Typed wrappers around the account API endpoints."""
