"""Dental mentor chat API."""
