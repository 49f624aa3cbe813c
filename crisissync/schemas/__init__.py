"""Pydantic wire schemas."""
