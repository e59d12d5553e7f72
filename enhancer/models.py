"""
Pydantic models for API request / response schemas.

Field names follow the front end's camelCase JSON. ``provider`` is also
accepted as ``aiType``, the name older clients send.
"""

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ── Enums ─────────────────────────────────────────────────────────────

class Provider(str, Enum):
    """Large-language-model services the dispatcher can target."""

    GROK = "grok"
    GEMINI = "gemini"


class Level(str, Enum):
    """Quality level threaded into the outbound prompt text."""

    BASIC = "basic"
    ADVANCED = "advanced"
    PRODUCTION = "production"


# ── Requests ──────────────────────────────────────────────────────────

class _ProviderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: Provider = Field(
        ...,
        validation_alias=AliasChoices("provider", "aiType"),
        description="Target AI provider",
    )
    level: Level = Field(..., description="Requested quality level")


class EnhancePromptRequest(_ProviderRequest):
    """POST /api/enhance-prompt request body."""

    prompt: str = Field(..., min_length=1, description="Prompt to enhance")


class GenerateCodeRequest(_ProviderRequest):
    """POST /api/generate-code request body."""

    prompt: str = Field(..., min_length=1, description="Prompt to generate code from")


class EnhanceCodeRequest(_ProviderRequest):
    """POST /api/enhance-code request body."""

    code_base: str = Field(
        ...,
        min_length=1,
        alias="codeBase",
        description="Flattened code base; only the first 8000 characters are used",
    )


class IngestRepoRequest(BaseModel):
    """POST /api/ingest-repo request body."""

    model_config = ConfigDict(populate_by_name=True)

    repo_url: str = Field(
        ...,
        min_length=1,
        alias="repoUrl",
        examples=["https://github.com/psf/requests"],
    )


# ── Responses ─────────────────────────────────────────────────────────

class EnhancePromptResponse(BaseModel):
    enhanced: list[str]


class GenerateCodeResponse(BaseModel):
    code: str


class IngestRepoResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code_base: str = Field(..., alias="codeBase")


class EnhanceCodeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enhanced_code: str = Field(..., alias="enhancedCode")


# ── Error ─────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    """Uniform error body returned by every failure mode."""

    error: str = Field(..., description="Human-readable error description")
