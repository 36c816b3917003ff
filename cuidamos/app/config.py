"""Runtime configuration read from the environment."""
import logging
import os

from dotenv import load_dotenv

# .env is optional; real environment variables win
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cuidamos.db")
INVITE_TTL_HOURS = int(os.getenv("CUIDAMOS_INVITE_TTL_HOURS", "24"))
INVITE_MAX_ATTEMPTS = int(os.getenv("CUIDAMOS_INVITE_MAX_ATTEMPTS", "8"))
LOG_LEVEL = os.getenv("CUIDAMOS_LOG_LEVEL", "INFO").upper()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
