"""Schemas for the example secured endpoint."""

from pydantic import BaseModel


class ExampleRequest(BaseModel):
    """Payload accepted by ``POST /api/example``."""

    email: str | None = None
    password: str | None = None
    name: str | None = None


class ExampleData(BaseModel):
    email: str
    name: str


class ExampleResponse(BaseModel):
    message: str
    data: ExampleData | None = None
    timestamp: str | None = None
