"""Pydantic schemas for validating records before persistence."""
