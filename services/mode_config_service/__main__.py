import uvicorn

from shared.common_utils.logger import logger

from .config.env_settings import ModeConfigSettings
from .src.api import create_app


def main() -> None:
    settings = ModeConfigSettings()
    logger.info(f"Starting {settings.SERVICE_NAME} on {settings.API_URL}")
    uvicorn.run(create_app(settings), host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    main()
