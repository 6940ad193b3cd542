"""
Client for the upstream PokeAPI.

Only read-only GETs are issued. Every failure is surfaced as an
``UpstreamError`` except for the evolution-chain lookup, which reports a
missing chain instead of failing.
"""

import logging
from typing import Any, Dict, Optional, Union

import requests

from errors import UpstreamError
from settings import POKEAPI_URL, UPSTREAM_TIMEOUT, USER_AGENT

logger = logging.getLogger("pokedex.api")


class PokeAPIClient:
    def __init__(self, base_url: str = POKEAPI_URL, timeout: float = UPSTREAM_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def fetch_resource(self, path: str) -> Dict[str, Any]:
        """
        GET a PokeAPI resource and return its parsed JSON body.

        Args:
            path: Path relative to the base URL, or an absolute resource URL
                (PokeAPI embeds absolute URLs in its payloads).

        Raises:
            UpstreamError: On network failure, timeout, non-2xx status or a
                body that is not a JSON object.
        """
        url = self._url(path)
        try:
            r = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Error fetching from PokeAPI: {url}", extra={"error": str(e)})
            raise UpstreamError(f"Request failed: {e}", url) from e

        if not r.ok:
            logger.error(f"PokeAPI returned {r.status_code} for {url}")
            raise UpstreamError(f"PokeAPI responded with status {r.status_code}", url, r.status_code)

        try:
            data = r.json()
        except ValueError as e:
            raise UpstreamError("Malformed JSON body", url, r.status_code) from e
        if not isinstance(data, dict):
            raise UpstreamError("Unexpected response body", url, r.status_code)
        return data

    def fetch_pokemon(self, identifier: Union[int, str]) -> Dict[str, Any]:
        return self.fetch_resource(f"pokemon/{identifier}")

    def fetch_catalog(self, limit: int, offset: int = 0) -> Dict[str, Any]:
        return self.fetch_resource(f"pokemon?limit={limit}&offset={offset}")

    def fetch_evolution_chain(self, species_url: str) -> Optional[Dict[str, Any]]:
        """Resolve species -> evolution_chain reference -> chain; None on any failure."""
        try:
            species = self.fetch_resource(species_url)
            chain_url = (species.get("evolution_chain") or {}).get("url")
            if not chain_url:
                logger.info("Species has no evolution chain", extra={"species": species_url})
                return None
            return self.fetch_resource(chain_url)
        except UpstreamError as e:
            logger.warning(f"Error fetching evolution chain: {e.message}", extra={"species": species_url})
            return None

    def close(self):
        self.session.close()
