"""Shared helpers for Workspace Relay."""
