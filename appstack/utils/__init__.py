"""Utility helpers shared across appstack packages."""
