"""HTTP API for the battle arena.

Callers are identified by the X-Owner-Id header, which is trusted as-is
(authentication happens upstream). Arena errors are rendered as
{"error": ...} with the status code the error class carries.
"""

from __future__ import annotations

import random
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from battle_arena import __version__
from battle_arena.core.config import ArenaConfig
from battle_arena.core.errors import (
    ArenaError,
    AuthenticationError,
    CooldownActiveError,
    ValidationError,
)
from battle_arena.core.timeutils import now_ms
from battle_arena.services.battle import BattleService, OutcomeOracle
from battle_arena.services.llm import LLMClient, create_client
from battle_arena.services.storage import ArenaRepository, RankingStore, create_store

logger = structlog.get_logger()


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class BattleRequest(_Body):
    character_id: str = Field(default="", alias="characterId")


class CharacterCreateRequest(_Body):
    name: str = ""
    traits: str = ""
    league: str | None = None


class TraitsUpdateRequest(_Body):
    traits: str = ""


def owner_id(x_owner_id: str | None = Header(default=None, alias="X-Owner-Id")) -> str:
    if not x_owner_id or not x_owner_id.strip():
        raise AuthenticationError()
    return x_owner_id.strip()


def get_service(request: Request) -> BattleService:
    return request.app.state.battle_service


def get_repository(request: Request) -> ArenaRepository:
    return request.app.state.repository


async def arena_error_handler(request: Request, exc: ArenaError) -> JSONResponse:
    headers = None
    if isinstance(exc, CooldownActiveError):
        headers = {"Retry-After": str(exc.remaining_seconds)}
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, error=str(exc))
    return JSONResponse(exc.payload(), status_code=exc.status_code, headers=headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "request_failed", path=request.url.path, error=str(exc), error_type=type(exc).__name__
    )
    return JSONResponse({"error": "Internal server error"}, status_code=500)


def create_app(
    config: ArenaConfig | None = None,
    store: RankingStore | None = None,
    client: LLMClient | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Arena configuration. Defaults apply when omitted.
        store: Ranking store. Built from config.store when omitted.
        client: Oracle client. Built from config.oracle when omitted; with no
            API key the oracle decides every battle with the local fallback.
    """
    config = config or ArenaConfig()
    store = store or create_store(config.store)
    if client is None:
        client = create_client(
            config.oracle.resolve_api_key(),
            model=config.oracle.model,
            seed=config.seed if config.seed is not None else 42,
        )

    rng = random.Random(config.seed)  # noqa: S311
    repository = ArenaRepository(store, config.battle, config.leagues)
    oracle = OutcomeOracle(client, config.oracle, rng=rng)
    service = BattleService(repository, oracle, config.battle, rng=rng)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("api_started", backend=config.store.backend, oracle=client is not None)
        yield
        if client is not None:
            await client.close()
        await store.close()

    app = FastAPI(
        title="Battle Arena",
        description="Character battles judged by an LLM and ranked by Elo",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.repository = repository
    app.state.battle_service = service
    app.add_exception_handler(ArenaError, arena_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    # ==================== Battles ====================

    @app.post("/battle")
    async def start_battle(
        body: BattleRequest,
        owner: str = Depends(owner_id),
        service: BattleService = Depends(get_service),
    ) -> dict[str, Any]:
        result = await service.start_battle(owner, body.character_id)
        return result.to_public()

    @app.get("/battle")
    async def get_battles(
        battle_id: str | None = Query(default=None, alias="id"),
        character_id: str | None = Query(default=None, alias="characterId"),
        address: str | None = None,
        limit: int = Query(default=20, ge=1, le=100),
        service: BattleService = Depends(get_service),
    ) -> dict[str, Any]:
        if battle_id:
            battle = await service.get_battle(battle_id)
            return {"battle": battle.to_public()}
        battles = await service.get_battles(
            character_id=character_id, owner_id=address, limit=limit
        )
        return {"battles": [b.to_public() for b in battles]}

    @app.get("/cooldown")
    async def cooldown(
        character_id: str = Query(default="", alias="characterId"),
        service: BattleService = Depends(get_service),
    ) -> dict[str, int]:
        return {"cooldown": await service.cooldown_status(character_id)}

    # ==================== Rankings ====================

    @app.get("/ranking")
    async def ranking(
        league: str | None = None,
        limit: int = Query(default=10, ge=1, le=100),
        offset: int = Query(default=0, ge=0),
        repository: ArenaRepository = Depends(get_repository),
    ) -> dict[str, Any]:
        league = _require_league(repository, league)
        entries, total = await repository.league_leaderboard(league, limit=limit, offset=offset)
        return {
            "league": league,
            "rankings": [{"rank": e.rank, **e.character.to_public()} for e in entries],
            "total": total,
        }

    @app.get("/ranking/user")
    async def user_ranking(
        league: str | None = None,
        owner: str = Depends(owner_id),
        repository: ArenaRepository = Depends(get_repository),
    ) -> dict[str, Any]:
        league = _require_league(repository, league)
        best = await repository.owner_ranking(owner, league)
        if best is None:
            return {"league": league, "ranking": None}
        return {
            "league": league,
            "ranking": {
                "characterId": best.character_id,
                "characterName": best.character_name,
                "rank": best.rank,
                "elo": best.elo,
            },
        }

    # ==================== Characters ====================

    @app.post("/character")
    async def create_character(
        body: CharacterCreateRequest,
        owner: str = Depends(owner_id),
        repository: ArenaRepository = Depends(get_repository),
    ) -> dict[str, Any]:
        character = await repository.create_character(
            owner, body.name, body.traits, now=now_ms(), league=body.league
        )
        return {"character": character.to_public()}

    @app.get("/character/{character_id}")
    async def get_character(
        character_id: str,
        repository: ArenaRepository = Depends(get_repository),
    ) -> dict[str, Any]:
        character = await repository.require_character(character_id)
        return {"character": character.to_public()}

    @app.get("/characters")
    async def list_characters(
        owner: str | None = None,
        x_owner_id: str | None = Header(default=None, alias="X-Owner-Id"),
        repository: ArenaRepository = Depends(get_repository),
    ) -> dict[str, Any]:
        owner = owner or x_owner_id
        if not owner:
            raise ValidationError("Owner is required")
        characters = await repository.list_owner_characters(owner)
        return {"characters": [c.to_public() for c in characters]}

    @app.delete("/character/{character_id}")
    async def delete_character(
        character_id: str,
        owner: str = Depends(owner_id),
        repository: ArenaRepository = Depends(get_repository),
    ) -> dict[str, bool]:
        await repository.delete_character(owner, character_id)
        return {"success": True}

    @app.post("/character/{character_id}/traits")
    async def update_traits(
        character_id: str,
        body: TraitsUpdateRequest,
        owner: str = Depends(owner_id),
        repository: ArenaRepository = Depends(get_repository),
    ) -> dict[str, Any]:
        character, previous_elo = await repository.update_traits(
            owner, character_id, body.traits, now=now_ms()
        )
        return {"character": character.to_public(), "previousElo": previous_elo}

    return app


def _require_league(repository: ArenaRepository, league: str | None) -> str:
    league = league or repository.league_config.general
    if not repository.league_config.is_known(league):
        raise ValidationError(f"Unknown league: {league}")
    return league
