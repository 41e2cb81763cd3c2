"""Run the API with uvicorn: python -m tradesim"""

import uvicorn

from tradesim.config.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "tradesim.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG and settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
