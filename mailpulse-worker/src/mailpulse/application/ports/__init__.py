"""Ports: protocols the application depends on."""
