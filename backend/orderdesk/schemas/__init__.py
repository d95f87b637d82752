"""Pydantic payloads, records and status objects."""
