from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.courses.academic_course_years_router import router as academic_course_years_router
from app.api.v1.courses.router import router as courses_router
from app.api.v1.promotions.history_router import router as promotion_history_router
from app.api.v1.promotions.router import router as promotions_router
from app.api.v1.students.router import router as students_router
from app.core.config import settings
from app.core.logging_config import get_logger
from app.core.middleware import RequestLoggingMiddleware

logger = get_logger("app")


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed input is a 400, as the rest of the API reports bad requests."""
    logger.info(f"Rejected malformed request to {request.url.path}", extra={"errors": exc.errors()})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def create_app() -> FastAPI:
    app = FastAPI(title="College Management Backend")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # Routers
    app.include_router(courses_router)
    app.include_router(academic_course_years_router)
    app.include_router(students_router)
    app.include_router(promotions_router)
    app.include_router(promotion_history_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
