import uvicorn

from .config import get_settings


def main():
    settings = get_settings()
    uvicorn.run("review_portal.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
