"""
Read-through cache fill.

On a store miss a Pokémon is fetched from PokeAPI, normalized to the record
shape in ``schemas.PokemonRecord`` and written back. Concurrent fills for the
same identifier share a single upstream request, and the write is an atomic
insert-if-absent so racing fills converge on one document.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, Optional, Tuple, Union

from pydantic import ValidationError as SchemaError

from database import PokemonStore
from errors import UpstreamError
from pokeapi import PokeAPIClient
from schemas import PokemonRecord
from settings import MAX_MOVES, PREFETCH_LIMIT, PREFETCH_WORKERS

logger = logging.getLogger("pokedex.cache")


def normalize_pokemon(raw: Dict[str, Any], max_moves: int = MAX_MOVES) -> Dict[str, Any]:
    """Map a PokeAPI /pokemon payload to the stored record shape."""
    sprites = raw.get("sprites") or {}
    try:
        record = PokemonRecord(
            id=raw["id"],
            name=raw["name"],
            height=raw["height"],
            weight=raw["weight"],
            sprites={
                "front_default": sprites.get("front_default"),
                "back_default": sprites.get("back_default"),
                "front_shiny": sprites.get("front_shiny"),
            },
            types=[{"slot": t["slot"], "type": t["type"]} for t in raw.get("types", [])],
            # Upstream order, no re-sorting
            moves=[{"move": m["move"]} for m in raw.get("moves", [])[:max_moves]],
            stats=[
                {"base_stat": s["base_stat"], "effort": s.get("effort", 0), "stat": s["stat"]}
                for s in raw.get("stats", [])
            ],
            abilities=[
                {"ability": a["ability"], "is_hidden": a.get("is_hidden", False), "slot": a["slot"]}
                for a in raw.get("abilities", [])
            ],
            species=raw["species"],
        )
    except (KeyError, TypeError, SchemaError) as e:
        raise UpstreamError(f"Malformed pokemon payload: {e}", f"pokemon/{raw.get('id') or raw.get('name')}") from e
    return record.model_dump(exclude={"createdAt", "updatedAt"})


def _key(identifier: Union[int, str]) -> str:
    return str(identifier).lower()


class CacheFiller:
    """
    Fills the store from PokeAPI.

    Args:
        store: Record store the cache reads and writes.
        client: Upstream PokeAPI client.
        prefetch_limit: Number of catalog entries fetched by a warm-up.
        workers: Thread pool size for the warm-up fan-out.
    """

    def __init__(
        self,
        store: PokemonStore,
        client: PokeAPIClient,
        prefetch_limit: int = PREFETCH_LIMIT,
        workers: int = PREFETCH_WORKERS,
    ):
        self.store = store
        self.client = client
        self.prefetch_limit = prefetch_limit
        self.workers = workers

        # In-flight fills, keyed by identifier
        self._pending: Dict[str, Future] = {}
        self._pending_lock = threading.Lock()

    def _deduplicate(self, key: str, fill: Callable, *args):
        """
        Run ``fill`` once per key at a time; concurrent callers share its outcome.

        The lock is held only while registering or joining the pending future,
        never while the fill runs.
        """
        with self._pending_lock:
            future = self._pending.get(key)
            created = future is None
            if created:
                future = Future()
                self._pending[key] = future

        if not created:
            logger.debug("Joining in-flight fill", extra={"key": key})
            return future.result()

        try:
            result = fill(*args)
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._pending_lock:
                if self._pending.get(key) is future:
                    del self._pending[key]

    def _fill(self, identifier: Union[int, str]) -> Tuple[Dict[str, Any], bool]:
        raw = self.client.fetch_pokemon(identifier)
        record = normalize_pokemon(raw)
        stored, inserted = self.store.insert_if_absent(record)
        if inserted:
            logger.info(f"Cached {stored['name']}", extra={"pokemon_id": stored["id"]})
        return stored, inserted

    def _resolve(self, identifier: Union[int, str]) -> Tuple[Dict[str, Any], bool]:
        record = self.store.find_one(identifier)
        if record is not None:
            return record, False
        return self._deduplicate(_key(identifier), self._fill, identifier)

    def ensure_record(self, identifier: Union[int, str]) -> Dict[str, Any]:
        """
        Return the stored record for a numeric id or lowercase name, filling on a miss.

        Raises:
            UpstreamError: If PokeAPI cannot provide the Pokémon.
        """
        record, _ = self._resolve(identifier)
        return record

    def _prefetch_entry(self, name: str) -> bool:
        if self.store.exists(name):
            return False
        _, inserted = self._resolve(name)
        return inserted

    def ensure_initial_catalog(self) -> Dict[str, int]:
        """
        Best-effort warm-up of the first catalog page.

        Entries are filled concurrently; an entry that fails is logged and
        skipped. Only a failure to fetch the catalog listing itself propagates.

        Returns:
            Counts of requested, inserted and failed entries.
        """
        logger.info("Fetching initial Pokemon from PokeAPI", extra={"limit": self.prefetch_limit})
        listing = self.client.fetch_catalog(self.prefetch_limit, 0)
        names = [entry["name"] for entry in listing.get("results", []) if entry.get("name")]

        stats = {"requested": len(names), "inserted": 0, "failed": 0}
        if not names:
            return stats

        with ThreadPoolExecutor(max_workers=min(self.workers, len(names))) as pool:
            futures = {pool.submit(self._prefetch_entry, name): name for name in names}
            for future in as_completed(futures):
                error = future.exception()
                if error is not None:
                    stats["failed"] += 1
                    logger.warning(f"Failed to fetch {futures[future]}: {error}")
                elif future.result():
                    stats["inserted"] += 1

        logger.info("Initial Pokemon data saved", extra=stats)
        return stats

    def enrich_evolution(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Attach the evolution chain if the record lacks one; a no-op otherwise."""
        if record.get("evolutionChain"):
            return record

        species_url = (record.get("species") or {}).get("url")
        if not species_url:
            return record

        chain: Optional[Dict[str, Any]] = self.client.fetch_evolution_chain(species_url)
        if not chain:
            return record

        updated = self.store.upsert({"id": record["id"]}, {"evolutionChain": chain})
        return updated if updated is not None else dict(record, evolutionChain=chain)
