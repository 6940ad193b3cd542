import os
import sys
import threading
import time
from urllib.parse import parse_qs, urlparse

import mongomock
import pytest

# Add project root to python path so we can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from cache import CacheFiller  # noqa: E402
from database import PokemonStore  # noqa: E402
from errors import UpstreamError  # noqa: E402
from pokeapi import PokeAPIClient  # noqa: E402
from service import PokemonService  # noqa: E402

BASE_URL = "https://pokeapi.test/api/v2"

KNOWN_NAMES = {
    1: "bulbasaur",
    2: "ivysaur",
    3: "venusaur",
    4: "charmander",
    5: "charmeleon",
    6: "charizard",
    7: "squirtle",
    25: "pikachu",
    26: "raichu",
}


def pokemon_name(pokemon_id):
    return KNOWN_NAMES.get(pokemon_id, f"mon-{pokemon_id:03d}")


def make_pokemon_payload(pokemon_id, move_count=15):
    name = pokemon_name(pokemon_id)
    return {
        "id": pokemon_id,
        "name": name,
        "height": 7,
        "weight": 69,
        "base_experience": 64,
        "sprites": {
            "front_default": f"https://img.test/{pokemon_id}.png",
            "back_default": f"https://img.test/back/{pokemon_id}.png",
            "front_shiny": None,
        },
        "types": [
            {"slot": 1, "type": {"name": "grass", "url": f"{BASE_URL}/type/12/"}},
            {"slot": 2, "type": {"name": "poison", "url": f"{BASE_URL}/type/4/"}},
        ],
        "moves": [
            {"move": {"name": f"move-{i}", "url": f"{BASE_URL}/move/{i}/"}, "version_group_details": []}
            for i in range(move_count)
        ],
        "stats": [
            {"base_stat": 45, "effort": 0, "stat": {"name": "hp", "url": f"{BASE_URL}/stat/1/"}},
            {"base_stat": 49, "effort": 1, "stat": {"name": "attack", "url": f"{BASE_URL}/stat/2/"}},
        ],
        "abilities": [
            {"ability": {"name": "overgrow", "url": f"{BASE_URL}/ability/65/"}, "is_hidden": False, "slot": 1},
        ],
        "species": {"name": name, "url": f"{BASE_URL}/pokemon-species/{pokemon_id}/"},
    }


class FakePokeAPI(PokeAPIClient):
    """PokeAPI stand-in serving canned payloads for ids 1..catalog_size."""

    def __init__(self, catalog_size=100):
        super().__init__(base_url=BASE_URL)
        self.catalog_size = catalog_size
        self.calls = []
        self.failing = set()
        self.delay = 0.0
        self._lock = threading.Lock()
        self._ids = {pokemon_name(i): i for i in range(1, catalog_size + 1)}

    def calls_to(self, path):
        return [c for c in self.calls if c == path]

    def fetch_resource(self, path):
        url = self._url(path)
        relative = url[len(self.base_url) + 1:].rstrip("/")
        with self._lock:
            self.calls.append(relative)
        if relative in self.failing:
            raise UpstreamError("PokeAPI responded with status 500", url, 500)

        parsed = urlparse(relative)
        parts = parsed.path.split("/")
        resource = parts[0]
        if resource == "pokemon" and len(parts) == 1:
            query = parse_qs(parsed.query)
            limit = int(query["limit"][0])
            offset = int(query["offset"][0])
            ids = range(offset + 1, min(offset + limit, self.catalog_size) + 1)
            return {
                "count": self.catalog_size,
                "results": [{"name": pokemon_name(i), "url": f"{BASE_URL}/pokemon/{i}/"} for i in ids],
            }

        key = parts[1]
        pokemon_id = int(key) if key.isdigit() else self._ids.get(key)
        if pokemon_id is None or pokemon_id > self.catalog_size:
            raise UpstreamError("PokeAPI responded with status 404", url, 404)

        if resource == "pokemon":
            if self.delay:
                time.sleep(self.delay)
            return make_pokemon_payload(pokemon_id)
        if resource == "pokemon-species":
            return {"id": pokemon_id, "evolution_chain": {"url": f"{BASE_URL}/evolution-chain/{pokemon_id}/"}}
        if resource == "evolution-chain":
            return {
                "id": pokemon_id,
                "chain": {
                    "species": {"name": pokemon_name(pokemon_id), "url": f"{BASE_URL}/pokemon-species/{pokemon_id}/"},
                    "evolves_to": [],
                },
            }
        raise UpstreamError("PokeAPI responded with status 404", url, 404)


@pytest.fixture
def collection():
    return mongomock.MongoClient().db.pokemons


@pytest.fixture
def store(collection):
    store = PokemonStore(collection)
    store.ensure_indexes()
    return store


@pytest.fixture
def upstream():
    return FakePokeAPI()


@pytest.fixture
def filler(store, upstream):
    return CacheFiller(store, upstream, workers=4)


@pytest.fixture
def service(store, filler):
    return PokemonService(store, filler)
