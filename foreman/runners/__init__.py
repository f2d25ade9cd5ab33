"""Runners for the Foreman application."""
