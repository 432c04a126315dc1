from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from deepreport.api.routes import models, sessions
from deepreport.config import settings
from deepreport.errors import ErrorCategory, ResearchError
from deepreport.models.schemas import ErrorResponse

STATUS_BY_CATEGORY = {
    ErrorCategory.RATE_LIMITED: 429,
    ErrorCategory.QUOTA_EXCEEDED: 403,
    ErrorCategory.EMPTY_RESULT: 404,
    ErrorCategory.VALIDATION: 422,
    ErrorCategory.UPSTREAM_FAILURE: 502,
    ErrorCategory.RUN_IN_PROGRESS: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    yield
    # Shutdown


app = FastAPI(
    title="deepreport",
    description="Source-grounded research reports from web search and LLM synthesis",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ResearchError)
async def research_error_handler(request: Request, exc: ResearchError):
    status_code = STATUS_BY_CATEGORY.get(exc.category, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(category=exc.category.value, message=exc.message).model_dump(),
    )


# Routes
app.include_router(sessions.router)
app.include_router(models.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "deepreport"}
