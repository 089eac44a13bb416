"""Shared builders for forwarder tests."""
