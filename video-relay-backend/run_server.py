import uvicorn

from config import Settings

if __name__ == "__main__":
    settings = Settings.from_env()
    uvicorn.run(
        "main:get_application",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
