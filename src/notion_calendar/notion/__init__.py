"""Typed access to the Notion REST API."""
