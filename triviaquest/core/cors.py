from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI
from .config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    # credentials are needed for the session cookie
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.FRONTEND_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        max_age=3600,
    )
