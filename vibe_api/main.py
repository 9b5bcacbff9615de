# vibe_api/main.py

import uvicorn

from vibe_api.config import get_settings
from vibe_api.observability.logger import configure_logging
from vibe_api.utils.logger import log_info


def main() -> None:
    """ Main entry point: configure logging, then serve the app with uvicorn. """
    settings = get_settings()
    configure_logging(settings)
    log_info(f"Starting server on http://{settings.HOST}:{settings.PORT}")
    uvicorn.run(
        "vibe_api.main_fastapi:get_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
