import logging
import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL") or "mongodb://localhost:27017"
DATABASE_NAME = os.getenv("DATABASE_NAME") or "fundverse"
LOG_LEVEL = os.getenv("LOG_LEVEL") or "INFO"
SEED_ON_STARTUP = (os.getenv("SEED_ON_STARTUP") or "").lower() in ("1", "true", "yes")

MEMORY_URL = "memory://"


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
