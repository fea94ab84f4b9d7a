from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.cache import close_redis, connect_redis
from app.core.config import settings
from app.core.exceptions import SearchExecutionError, SearchValidationError
from app.core.logging_config import setup_logging
from app.core.supabase import close_supabase, connect_supabase
from app.routers.analytics import router as analytics_router
from app.routers.search import router as search_router

# Setup logging (must be done before any other imports that use logging)
setup_logging(log_level=settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    await connect_supabase()
    await connect_redis()
    yield
    # Shutdown
    await close_redis()
    await close_supabase()


app = FastAPI(
    title=settings.APP_NAME,
    description="Gemstone catalog search: full-text search with fuzzy fallback, suggestions and analytics",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(analytics_router, prefix="/api")
app.include_router(search_router, prefix="/api")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [{k: v for k, v in error.items() if k not in ("ctx", "url")} for error in exc.errors()]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation Error", "details": jsonable_encoder(details)},
    )


@app.exception_handler(SearchValidationError)
async def search_validation_handler(request: Request, exc: SearchValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation Error", "details": jsonable_encoder(exc.details)},
    )


@app.exception_handler(SearchExecutionError)
async def search_execution_handler(request: Request, exc: SearchExecutionError):
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Search Failed", "message": str(exc)},
    )


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.APP_NAME}"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
