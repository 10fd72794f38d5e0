from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class GenerationCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    source_text: str = Field(..., min_length=100, max_length=1000)


class GenerationProposal(BaseModel):
    front: str
    back: str


class GenerateFlashcardsResult(BaseModel):
    generation_id: int
    model: str
    generated_count: int
    generation_duration: int
    proposals: list[GenerationProposal] = Field(default_factory=list)


class GenerateFlashcardsResponse(BaseModel):
    data: GenerateFlashcardsResult


class GenerationMetricsUpdate(BaseModel):
    accepted_unedited_count: int | None = Field(default=None, ge=0)
    accepted_edited_count: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _at_least_one(self) -> "GenerationMetricsUpdate":
        if self.accepted_unedited_count is None and self.accepted_edited_count is None:
            raise ValueError("At least one field must be provided")
        return self


class GenerationRead(BaseModel):
    """Generation record without the owner column."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    model: str
    generated_count: int
    accepted_unedited_count: int | None = None
    accepted_edited_count: int | None = None
    source_text_hash: str
    source_text_length: int
    generation_duration: int
    created_at: datetime
    updated_at: datetime


class GenerationResponse(BaseModel):
    data: GenerationRead
