"""Uniform response envelope shared by every endpoint."""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


def to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class ApiResponse(BaseModel, Generic[T]):
    status: int = Field(..., description="HTTP status code mirrored in the body")
    message: str = Field(..., description="Human readable outcome")
    data: Optional[T] = Field(default=None, description="Response payload")

    @classmethod
    def create(cls, status: int, message: str, data: Any = None) -> "ApiResponse[T]":
        return cls(status=status, message=message, data=data)


def envelope_response(status_code: int, message: str, data: Any = None) -> JSONResponse:
    """Build a JSONResponse carrying the envelope outside of a response_model."""

    body = {"status": status_code, "message": message, "data": jsonable_encoder(data)}
    return JSONResponse(status_code=status_code, content=body)


__all__ = ["ApiResponse", "CamelModel", "envelope_response", "to_camel"]
