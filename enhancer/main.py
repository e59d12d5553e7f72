"""
FastAPI application: prompt & code enhancer gateway.

Endpoints:
  GET  /health               → health check
  POST /api/enhance-prompt   → three AI-enhanced variants of a prompt
  POST /api/generate-code    → code generated from a prompt
  POST /api/ingest-repo      → a public GitHub repository flattened to text
  POST /api/enhance-code     → an AI-improved version of a code base

Features:
  - CORS enabled for the browser front end
  - Security headers and a fixed-window rate limit
  - Consistent ``{"error": ...}`` body across all failure modes
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from enhancer.config import Settings, configure_logging, get_settings
from enhancer.github_fetcher import (
    GitHubClient,
    GitHubFetchError,
    InvalidRepoUrlError,
    RepositoryFetchError,
    flatten_repo,
    parse_github_url,
)
from enhancer.llm_client import AIDispatcher, LLMError
from enhancer.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    UnhandledErrorMiddleware,
)
from enhancer.models import (
    EnhanceCodeRequest,
    EnhanceCodeResponse,
    EnhancePromptRequest,
    EnhancePromptResponse,
    ErrorResponse,
    GenerateCodeRequest,
    GenerateCodeResponse,
    IngestRepoRequest,
    IngestRepoResponse,
)
from enhancer.prompts import (
    decompose_prompt,
    enhance_code_message,
    enhance_prompt_message,
    generate_code_message,
)

logger = logging.getLogger("enhancer")


# ── Dependencies ──────────────────────────────────────────────────────

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    """One outbound HTTP client per inbound request."""
    async with httpx.AsyncClient() as client:
        yield client


def get_dispatcher(
    settings: Settings = Depends(get_app_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> AIDispatcher:
    return AIDispatcher(settings, client)


def get_github_client(
    settings: Settings = Depends(get_app_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> GitHubClient:
    return GitHubClient(settings, client)


# ── Endpoints ─────────────────────────────────────────────────────────

router = APIRouter(
    prefix="/api",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        429: {"model": ErrorResponse, "description": "Too many requests"},
        500: {"model": ErrorResponse, "description": "Upstream or configuration error"},
    },
)


@router.post("/enhance-prompt", response_model=EnhancePromptResponse)
async def enhance_prompt(
    body: EnhancePromptRequest,
    dispatcher: AIDispatcher = Depends(get_dispatcher),
):
    """Decompose the prompt three ways and have the provider enhance each."""
    fragments = decompose_prompt(body.prompt, body.level)
    enhanced = await asyncio.gather(
        *[
            dispatcher.dispatch(body.provider, enhance_prompt_message(f, body.level))
            for f in fragments
        ]
    )
    return EnhancePromptResponse(enhanced=list(enhanced))


@router.post("/generate-code", response_model=GenerateCodeResponse)
async def generate_code(
    body: GenerateCodeRequest,
    dispatcher: AIDispatcher = Depends(get_dispatcher),
):
    code = await dispatcher.dispatch(
        body.provider, generate_code_message(body.prompt, body.level)
    )
    return GenerateCodeResponse(code=code)


@router.post("/ingest-repo", response_model=IngestRepoResponse)
async def ingest_repo(
    body: IngestRepoRequest,
    settings: Settings = Depends(get_app_settings),
    github: GitHubClient = Depends(get_github_client),
):
    """
    Flatten a public GitHub repository into a single text blob.

    A rate-limited traversal is restarted once from the root after
    ``retry_delay_seconds``; a second failure is returned to the caller.
    """
    owner, repo = parse_github_url(body.repo_url)
    logger.info("Ingesting %s/%s", owner, repo)

    try:
        code_base = await flatten_repo(github, owner, repo)
    except RepositoryFetchError as exc:
        if not exc.rate_limited:
            raise
        logger.warning(
            "GitHub rate limited while ingesting %s/%s, retrying in %.1fs",
            owner, repo, settings.retry_delay_seconds,
        )
        await asyncio.sleep(settings.retry_delay_seconds)
        code_base = await flatten_repo(github, owner, repo)

    return IngestRepoResponse(code_base=code_base)


@router.post("/enhance-code", response_model=EnhanceCodeResponse)
async def enhance_code(
    body: EnhanceCodeRequest,
    dispatcher: AIDispatcher = Depends(get_dispatcher),
):
    enhanced = await dispatcher.dispatch(
        body.provider, enhance_code_message(body.code_base, body.level)
    )
    return EnhanceCodeResponse(enhanced_code=enhanced)


# ── Error Handlers ────────────────────────────────────────────────────

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


async def github_error_handler(request: Request, exc: GitHubFetchError):
    """Bad URLs are client errors; every other GitHub failure is a 500."""
    if isinstance(exc, InvalidRepoUrlError):
        return _error(400, exc.message)
    logger.warning("GitHub error: %s (status=%d)", exc.message, exc.status_code)
    return _error(500, exc.message)


async def llm_error_handler(request: Request, exc: LLMError):
    logger.error("LLM error: %s (upstream_status=%s)", exc.message, exc.upstream_status)
    return _error(exc.status_code, exc.message)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = "; ".join(
        f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}"
        for e in exc.errors()
    )
    return _error(400, f"Validation error: {messages}")


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail))


# ── App Factory ───────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(
        "Enhancer gateway starting in %s mode on port %d",
        settings.environment, settings.port,
    )
    yield
    logger.info("Shutting down")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Prompt & Code Enhancer Gateway",
        description=(
            "Forward prompts to Grok or Gemini and flatten public GitHub "
            "repositories into a single text blob."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Last added is outermost: CORS, logging, security headers, rate limit,
    # then the unexpected-error catch-all
    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(GitHubFetchError, github_error_handler)
    app.add_exception_handler(LLMError, llm_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    @app.get("/health")
    async def health_check():
        """Simple health check for front-end connectivity testing."""
        return {"status": "ok"}

    app.include_router(router)
    return app


app = create_app()
