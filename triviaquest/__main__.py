import uvicorn

from .core.config import settings


def main() -> None:
    config = uvicorn.Config(
        "triviaquest.main:app",
        host="0.0.0.0",
        port=settings.BACKEND_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
    uvicorn.Server(config).run()


if __name__ == "__main__":
    main()
