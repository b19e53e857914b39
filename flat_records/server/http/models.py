"""Pydantic response models for the record store HTTP API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body returned with 404 and 500 responses."""

    message: str = Field(..., description="Human readable description of the failure.")


__all__ = ["ErrorResponse"]
