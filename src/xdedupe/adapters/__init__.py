"""Adapters binding the domain ports to concrete storage."""
