"""Query operations behind the /api/pokemon routes."""

import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from cache import CacheFiller
from database import PokemonStore
from errors import NotFoundError, UpstreamError, ValidationError
from settings import PAGE_SIZE, SEARCH_LIMIT

logger = logging.getLogger("pokedex.service")


def parse_page(page: Optional[str]) -> int:
    """Page numbers start at 1; anything unparseable or smaller means page 1."""
    try:
        value = int(page)
    except (TypeError, ValueError):
        return 1
    return value if value >= 1 else 1


def parse_identifier(identifier: str) -> Union[int, str]:
    try:
        return int(identifier)
    except ValueError:
        return identifier.lower()


class PokemonService:
    def __init__(
        self,
        store: PokemonStore,
        filler: CacheFiller,
        page_size: int = PAGE_SIZE,
        search_limit: int = SEARCH_LIMIT,
    ):
        self.store = store
        self.filler = filler
        self.page_size = page_size
        self.search_limit = search_limit

    def list_pokemon(self, page: Optional[str] = None, search: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        page_number = parse_page(page)
        limit = self.page_size
        skip = (page_number - 1) * limit

        if not search and self.store.count() == 0:
            self.filler.ensure_initial_catalog()

        pokemon = self.store.find_many(search, skip=skip, limit=limit)
        total = self.store.count(search)
        pagination = {
            "page": page_number,
            "limit": limit,
            "total": total,
            "hasMore": skip + limit < total,
        }
        return pokemon, pagination

    def get_detail(self, identifier: Optional[str]) -> Dict[str, Any]:
        if not identifier or not identifier.strip():
            raise ValidationError("Invalid identifier")

        key = parse_identifier(identifier.strip())
        try:
            pokemon = self.filler.ensure_record(key)
        except UpstreamError as e:
            if e.status == 404:
                raise NotFoundError("Pokemon not found") from e
            raise

        if pokemon and not pokemon.get("evolutionChain"):
            pokemon = self.filler.enrich_evolution(pokemon)

        if not pokemon:
            raise NotFoundError("Pokemon not found")
        return pokemon

    def search(self, query: Optional[str]) -> List[Dict[str, Any]]:
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        return self.store.find_many(query.strip(), limit=self.search_limit)

    def sync(self) -> Dict[str, int]:
        stats = self.filler.ensure_initial_catalog()
        logger.info("Pokemon data synced", extra=stats)
        return stats

    def all(self) -> List[Dict[str, Any]]:
        return self.store.find_all()
