import uvicorn

from anitoday.core.config import get_settings


def main():
    settings = get_settings()
    print(f"🚀 Server: {settings.base_url}/manifest.json")
    uvicorn.run(
        "anitoday.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
