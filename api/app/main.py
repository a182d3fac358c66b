import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.app.api.api_v1.api import api_router
from api.app.core.config import Settings, get_settings
from api.app.core.cors import OriginPolicy, PolicyCORSMiddleware

logger = logging.getLogger("api")


def _envelope(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message}, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _envelope(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("REQUEST: invalid path=%s errors=%s", request.url.path, exc.errors())
    return _envelope(status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid request")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("REQUEST: unhandled error path=%s", request.url.path)
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)
    app = FastAPI(title=settings.app_name)
    policy = OriginPolicy.from_settings(settings)
    app.add_middleware(
        PolicyCORSMiddleware,
        policy=policy,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["ETag"],
    )
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(api_router, prefix=settings.api_prefix)
    logger.info(
        "App ready env=%s origins=%s allow_all=%s",
        settings.env_name,
        ",".join(sorted(policy.origins)),
        policy.allow_all,
    )
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
