import uvicorn
import os
from logging_config import setup_logging

# Setup logging before importing app
log_level = os.getenv("LOG_LEVEL", "DEBUG")
log_file = os.getenv("LOG_FILE", None)
setup_logging(log_level=log_level, log_file=log_file)

from app import app
from constants import SIGNALING_CONFIG
from logging_config import get_logger

logger = get_logger(__name__)


def main():
    """Run the signaling server; ``RELOAD=true`` switches to the import string uvicorn needs for reloading."""
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    reload = os.getenv("RELOAD", "false").lower() == "true"

    context = app.state.signaling
    logger.info(
        f"Starting EphemeralSignal on {host}:{port} "
        f"(transport: {type(context.transport).__name__}, config: {SIGNALING_CONFIG or 'environment only'}, "
        f"max clients per room: {context.config.rooms.max_clients or 'unlimited'})"
    )
    uvicorn.run(
        "app:app" if reload else app,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level.lower(),
        # keep the handlers installed by setup_logging
        log_config=None,
    )


if __name__ == "__main__":
    main()
