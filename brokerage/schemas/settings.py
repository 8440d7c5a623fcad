from typing import List

from pydantic import BaseModel, Field


class YearRead(BaseModel):
    year: int


class YearUpdate(BaseModel):
    year: int = Field(..., ge=2000, le=2100)


class YearsRead(BaseModel):
    active_year: int
    years: List[int] = Field(default_factory=list)
