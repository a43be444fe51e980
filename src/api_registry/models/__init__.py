"""Pydantic models for tool arguments."""
