"""Tsty HTTP API."""
