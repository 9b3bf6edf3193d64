"""Request bodies for the HTTP API."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import PreferenceKind

PlanSection = Literal["Breakfast", "Lunch", "Dinner", "Snacks"]


class CamelModel(BaseModel):
    """Accepts camelCase keys from the web client, or snake_case."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DietSuggestionsRequest(CamelModel):
    """Body of POST /generate-diet-suggestions.

    With no prompt this is structured mode; with a prompt it is free-text
    mode, optionally narrowed to one section.
    """

    user_id: str = Field(alias="userId", min_length=1)
    prompt: str | None = None
    regenerate_section: PlanSection | None = Field(default=None, alias="regenerateSection")

    @field_validator("prompt")
    @classmethod
    def blank_prompt_is_missing(cls, v):
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def section_needs_prompt(self):
        if self.regenerate_section is not None and self.prompt is None:
            raise ValueError("prompt is required when regenerateSection is set")
        return self

    @property
    def free_text(self) -> bool:
        return self.prompt is not None


class AnalyzeReportRequest(CamelModel):
    file_name: str = Field(alias="fileName", min_length=1)
    content: str | None = None


class HealthChatRequest(CamelModel):
    user_id: str = Field(alias="userId", min_length=1)
    message: str = Field(min_length=1)
    chat_id: int | None = Field(default=None, alias="chatId")


class PreferenceRequest(CamelModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)

    kind: PreferenceKind
    item: str = Field(min_length=1)


class GeneratePlanRequest(CamelModel):
    goal: str = Field(min_length=1)


class RegeneratePlanRequest(CamelModel):
    plan: str = Field(min_length=1)
    section: PlanSection
    goal: str | None = None


class SavePlanRequest(CamelModel):
    content: str = Field(min_length=1)
    goal: str | None = None


class UploadReportRequest(CamelModel):
    file_name: str = Field(alias="fileName", min_length=1)
    content: str | None = None
