import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import AuthorizationError
from app.core.logging_config import setup_logging
from app.db.session import dispose_engine
import app.models  # noqa: F401  # force model registration

from app.api.v1.auth import router as auth_router
from app.api.v1.me import router as me_router
from app.api.v1.users import router as users_router
from app.api.v1.tasks import router as tasks_router
from app.api.v1.leave_requests import router as leave_requests_router
from app.api.v1.attendance import router as attendance_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    await dispose_engine()


async def authorization_error_handler(request: Request, exc: AuthorizationError) -> JSONResponse:
    # denial bodies carry a code + message only, never resource details
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def create_application() -> FastAPI:
    setup_logging()

    app = FastAPI(title="Staffdesk API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AuthorizationError, authorization_error_handler)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "staffdesk"}

    # Routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(me_router, prefix="/api/v1")
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(tasks_router, prefix="/api/v1")
    app.include_router(leave_requests_router, prefix="/api/v1")
    app.include_router(attendance_router, prefix="/api/v1")

    logger.info("Staffdesk API configured (environment=%s)", settings.ENVIRONMENT)
    return app


app = create_application()
