"""Run the Spotify Genius local web app.

Reads settings from the environment (and a ``.env`` file if present), then
serves the app with uvicorn. Open http://127.0.0.1:8888/login to sign in.
"""

import logging
import sys

import uvicorn
from dotenv import load_dotenv

from genius.config import GeniusSettings
from genius.errors import ConfigurationError
from genius.web.app import create_app


def main() -> int:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = GeniusSettings.from_env()
    except ConfigurationError as e:
        logging.error(f"{e.user_message} ({e})")
        return 1

    logging.info(f"Serving on http://{settings.host}:{settings.port}")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
