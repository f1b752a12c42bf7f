"""
Run the chat server.

    python -m realtime_chat
    CHAT_BACKEND=sqlite CHAT_DB_PATH=chat.db CHAT_PORT=3000 python -m realtime_chat
"""

import uvicorn
from loguru import logger

from realtime_chat.api.app import create_app
from realtime_chat.config import Settings, configure_logging


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    app = create_app(settings)
    logger.info(f"Chat server running on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
