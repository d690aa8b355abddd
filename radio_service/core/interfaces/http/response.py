"""Standard API response models."""

from pydantic import BaseModel


class ErrorBody(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error response model（用于 OpenAPI 文档）。"""

    error: ErrorBody
