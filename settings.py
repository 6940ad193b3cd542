"""
Configuration settings for the Pokédex cache API.

Values are read from the environment (a local .env file is loaded first) and
validated once at startup.
"""

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("pokedex.config")

# Database
MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017/pokedex")
DATABASE_NAME = os.getenv("DATABASE_NAME")  # falls back to the URI database, then "pokedex"
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "pokemons")

# Upstream API
POKEAPI_URL = os.getenv("POKEAPI_URL", "https://pokeapi.co/api/v2")
UPSTREAM_TIMEOUT = float(os.getenv("UPSTREAM_TIMEOUT", 10))
USER_AGENT = "Pokedex-Cache-API/1.0"

# Catalog warm-up
PREFETCH_LIMIT = int(os.getenv("PREFETCH_LIMIT", 100))
PREFETCH_WORKERS = int(os.getenv("PREFETCH_WORKERS", 100))

# Query limits
PAGE_SIZE = 8
SEARCH_LIMIT = 20
MAX_MOVES = 10

# Server
PORT = int(os.getenv("PORT", 5000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def validate_settings():
    """
    Validate configuration values to catch errors at startup.

    Raises:
        ValueError: If a size, limit or timeout is not positive.
    """
    if UPSTREAM_TIMEOUT <= 0:
        raise ValueError("UPSTREAM_TIMEOUT must be positive")

    if PREFETCH_LIMIT < 1:
        raise ValueError("PREFETCH_LIMIT must be at least 1")

    if PREFETCH_WORKERS < 1:
        raise ValueError("PREFETCH_WORKERS must be at least 1")

    if not MONGODB_URI:
        raise ValueError("MONGODB_URI must be set")

    logger.info("Configuration validation completed successfully")
