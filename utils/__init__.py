"""Shared helpers for request handling."""
