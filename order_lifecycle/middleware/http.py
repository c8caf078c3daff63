from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from order_lifecycle.config import settings

_DEV_ORIGINS = ["http://localhost:3000"]


def configure_cors(app: FastAPI) -> None:
    # storefront / admin origins come from CORS_ORIGINS; dev falls back to the local frontend
    origins = settings.cors_origins or _DEV_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        max_age=86400,
    )


def add_security_headers(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers_mw(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Cache-Control"] = "no-store"
        return response
