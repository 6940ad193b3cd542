"""
Database Schemas

Pydantic models for the documents stored in the pokemon collection and for
the response envelopes returned by the API. The collection is schemaless;
these models describe the canonical record shape written by the cache.
"""

from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, List, Optional

class NamedResource(BaseModel):
    name: str
    url: str

class Sprites(BaseModel):
    front_default: str
    back_default: Optional[str] = None
    front_shiny: Optional[str] = None

class TypeSlot(BaseModel):
    slot: int
    type: NamedResource

class MoveEntry(BaseModel):
    move: NamedResource

class StatEntry(BaseModel):
    base_stat: int
    effort: int = 0
    stat: NamedResource

class AbilityEntry(BaseModel):
    ability: NamedResource
    is_hidden: bool = False
    slot: int

class PokemonRecord(BaseModel):
    id: int = Field(..., description="National Pokédex number")
    name: str
    height: int
    weight: int
    sprites: Sprites
    types: List[TypeSlot] = []
    moves: List[MoveEntry] = Field(default_factory=list, max_length=10)
    stats: List[StatEntry] = []
    abilities: List[AbilityEntry] = []
    species: NamedResource
    # Shape owned by PokeAPI, stored and returned as-is
    evolutionChain: Optional[Any] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

class PokemonSummary(BaseModel):
    id: int
    name: str
    sprites: Sprites
    types: List[TypeSlot] = []

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    hasMore: bool

class PokemonListResponse(BaseModel):
    success: bool = True
    data: List[PokemonSummary]
    pagination: Pagination

class PokemonDetailResponse(BaseModel):
    success: bool = True
    data: PokemonRecord

class PokemonSearchResponse(BaseModel):
    success: bool = True
    data: List[PokemonSummary]

class PokemonDumpResponse(BaseModel):
    success: bool = True
    total: int
    data: List[PokemonRecord]

class SyncResponse(BaseModel):
    success: bool = True
    message: str
    requested: int = 0
    inserted: int = 0
    failed: int = 0

class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    error: Optional[str] = None
