"""Result column metadata."""

from pydantic import BaseModel, Field


class ColumnInfo(BaseModel):
    """Name and declared type of one result column of a prepared query."""

    index: int = Field(ge=0)
    name: str
    decltype: str | None = None
