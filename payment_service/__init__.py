"""Idempotent payment submission service."""
