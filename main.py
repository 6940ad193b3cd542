import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from cache import CacheFiller
from database import PokemonStore, connect, get_collection
from errors import PokedexError
from pokeapi import PokeAPIClient
from schemas import (
    PokemonDetailResponse,
    PokemonDumpResponse,
    PokemonListResponse,
    PokemonSearchResponse,
    SyncResponse,
)
from service import PokemonService
from settings import LOG_LEVEL, PORT, validate_settings

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("pokedex")


@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_settings()
    client = connect()
    store = PokemonStore(get_collection(client))
    store.ensure_indexes()
    upstream = PokeAPIClient()
    app.state.service = PokemonService(store, CacheFiller(store, upstream))
    logger.info("Connected to MongoDB")
    try:
        yield
    finally:
        upstream.close()
        client.close()
        logger.info("Closed MongoDB connection")


app = FastAPI(title="Pokédex Cache API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 500 messages by route handler
FAILURE_MESSAGES = {
    "list_pokemon": "Failed to fetch Pokemon list",
    "all_pokemon": "Failed to fetch Pokemon catalog",
    "search_pokemon": "Failed to search Pokemon",
    "sync_pokemon": "Failed to sync Pokemon data",
    "get_pokemon": "Failed to fetch Pokemon detail",
}


def _failure_message(request: Request) -> str:
    endpoint = request.scope.get("endpoint")
    return FAILURE_MESSAGES.get(getattr(endpoint, "__name__", ""), "Internal server error")


def error_response(status_code: int, message: str, error: Optional[str] = None) -> JSONResponse:
    body = {"success": False, "message": message}
    if error:
        body["error"] = error
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(PokedexError)
def handle_pokedex_error(request: Request, exc: PokedexError):
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed: {exc.error or exc.message}")
        return error_response(exc.status_code, _failure_message(request), exc.error or exc.message)
    return error_response(exc.status_code, exc.message)


@app.exception_handler(PyMongoError)
def handle_store_error(request: Request, exc: PyMongoError):
    logger.error(f"{request.url.path} failed: {exc}")
    return error_response(500, _failure_message(request), str(exc))


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    return error_response(400, "Invalid request", str(exc.errors()))


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception(f"{request.url.path} failed")
    return error_response(500, _failure_message(request), str(exc) or "Unknown error")


def get_service(request: Request) -> PokemonService:
    return request.app.state.service


@app.get("/health")
def health():
    return {"status": "OK", "message": "Server is running"}


@app.get("/api/pokemon", response_model=PokemonListResponse)
def list_pokemon(page: Optional[str] = None, search: Optional[str] = None, service: PokemonService = Depends(get_service)):
    pokemon, pagination = service.list_pokemon(page, search)
    return {"success": True, "data": pokemon, "pagination": pagination}


# Unpaginated admin dump
@app.get("/api/pokemon/all", response_model=PokemonDumpResponse)
def all_pokemon(service: PokemonService = Depends(get_service)):
    pokemon = service.all()
    return {"success": True, "total": len(pokemon), "data": pokemon}


@app.get("/api/pokemon/search", response_model=PokemonSearchResponse)
def search_pokemon(query: Optional[str] = None, service: PokemonService = Depends(get_service)):
    return {"success": True, "data": service.search(query)}


@app.post("/api/pokemon/sync", response_model=SyncResponse)
def sync_pokemon(service: PokemonService = Depends(get_service)):
    stats = service.sync()
    return {"success": True, "message": "Pokemon data synced successfully", **stats}


@app.get("/api/pokemon/{identifier}", response_model=PokemonDetailResponse)
def get_pokemon(identifier: str, service: PokemonService = Depends(get_service)):
    return {"success": True, "data": service.get_detail(identifier)}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
