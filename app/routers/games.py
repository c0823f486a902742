"""
Pickup game endpoints – hosting, joining, and join-request review.

Every membership change goes through ``db.mutate_game`` so that the
state-machine rules in ``app.services.game_state`` are applied to the
latest saved revision of the game.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from app import db
from app.dependencies import CurrentUser, OptionalUser
from app.models import (
    Game,
    GameActionResponse,
    GameCreate,
    GameUpdate,
    JoinRequest,
    JoinRequestDecision,
    SkillLevel,
    User,
    UserRole,
)
from app.services import game_state
from app.services.errors import AuthorizationError, Outcome
from app.services.geo import distance_km

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/games", tags=["games"])


def _is_admin(user: User | None) -> bool:
    return user is not None and user.role == UserRole.admin


def _host_or_admin(user: User, action: str):
    """Wrap a state-machine step so only the host (or an admin) may run it."""

    def guard(game: Game, step) -> Outcome[Game]:
        if game.host_id != user.id and not _is_admin(user):
            return Outcome.fail(AuthorizationError(f"Only the host can {action} this game"))
        return step(game)

    return guard


async def _game_or_404(game_id: str) -> Game:
    game = await db.get_game(game_id)
    if game is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Game not found")
    return game


@router.get(
    "",
    response_model=list[Game],
    operation_id="listGames",
    summary="Open public games with free spots, soonest first",
)
async def list_games(
    sport: Annotated[str | None, Query()] = None,
    skill_level: Annotated[SkillLevel | None, Query()] = None,
    date: Annotated[str | None, Query(description="Only games on or after this date")] = None,
    lat: Annotated[float | None, Query(ge=-90, le=90)] = None,
    lng: Annotated[float | None, Query(ge=-180, le=180)] = None,
    radius: Annotated[float, Query(gt=0, description="Radius in km")] = 10,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> list[Game]:
    filters = {
        "sport": sport,
        "skill_level": skill_level.value if skill_level else None,
        "date_from": date,
    }
    if lat is None or lng is None:
        return await db.list_open_games(**filters, limit=limit)

    nearby = []
    for game in await db.list_open_games(**filters, limit=None):
        turf = await db.get_turf(game.turf_id)
        if turf is None or turf.coordinates is None:
            continue
        if distance_km(lat, lng, turf.coordinates.lat, turf.coordinates.lng) <= radius:
            nearby.append(game)
        if len(nearby) >= limit:
            break
    return nearby


@router.get(
    "/my-games",
    response_model=list[Game],
    operation_id="listMyGames",
    summary="Games hosted by the current user",
)
async def list_my_games(current_user: CurrentUser) -> list[Game]:
    return await db.list_games_by_host(current_user.id)


@router.get(
    "/{game_id}",
    response_model=Game,
    operation_id="getGame",
    summary="Get a game by ID",
)
async def get_game(game_id: str, viewer: OptionalUser) -> Game:
    """Private games are only visible to their participants and admins."""
    game = await _game_or_404(game_id)
    viewer_id = viewer.id if viewer else None
    if not game_state.can_view(game, viewer_id, is_admin=_is_admin(viewer)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This is a private game",
        )
    return game


@router.post(
    "",
    response_model=Game,
    status_code=status.HTTP_201_CREATED,
    operation_id="createGame",
    summary="Host a new game",
)
async def create_game(body: GameCreate, current_user: CurrentUser) -> Game:
    turf = await db.get_turf(body.turf_id)
    if turf is None or not turf.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Turf not found or inactive",
        )
    game = game_state.new_game(host_id=current_user.id, **body.model_dump())
    return await db.create_game(game)


@router.post(
    "/{game_id}/join",
    response_model=GameActionResponse,
    operation_id="joinGame",
    summary="Join a public game or ask to join a private one",
)
async def join_game(game_id: str, current_user: CurrentUser) -> GameActionResponse:
    outcome = await db.mutate_game(
        game_id, lambda game: game_state.join(game, current_user.id)
    )
    game = outcome.unwrap()
    return GameActionResponse(message=outcome.message, game=game)


@router.post(
    "/{game_id}/leave",
    response_model=GameActionResponse,
    operation_id="leaveGame",
    summary="Leave a game or withdraw a join request",
)
async def leave_game(game_id: str, current_user: CurrentUser) -> GameActionResponse:
    outcome = await db.mutate_game(
        game_id, lambda game: game_state.leave(game, current_user.id)
    )
    game = outcome.unwrap()
    return GameActionResponse(message=outcome.message, game=game)


@router.get(
    "/{game_id}/join-requests",
    response_model=list[JoinRequest],
    operation_id="listJoinRequests",
    summary="Pending join requests (host only)",
)
async def list_join_requests(game_id: str, current_user: CurrentUser) -> list[JoinRequest]:
    game = await _game_or_404(game_id)
    if game.host_id != current_user.id and not _is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the host can view join requests",
        )
    return game.join_requests


@router.post(
    "/{game_id}/join-requests/{user_id}",
    response_model=GameActionResponse,
    operation_id="respondToJoinRequest",
    summary="Approve or decline a pending join request",
)
async def respond_to_join_request(
    game_id: str,
    user_id: str,
    body: JoinRequestDecision,
    current_user: CurrentUser,
) -> GameActionResponse:
    outcome = await db.mutate_game(
        game_id,
        lambda game: game_state.respond_to_join_request(
            game, current_user.id, user_id, body.approve
        ),
    )
    game = outcome.unwrap()
    return GameActionResponse(message=outcome.message, game=game)


@router.put(
    "/{game_id}",
    response_model=GameActionResponse,
    operation_id="updateGame",
    summary="Update a game (host or admin)",
)
async def update_game(
    game_id: str, body: GameUpdate, current_user: CurrentUser
) -> GameActionResponse:
    """
    Change details of an open or full game. Setting ``status`` to
    in_progress, completed or cancelled closes it to further changes.
    """
    guard = _host_or_admin(current_user, "update")
    fields = body.model_dump(exclude_unset=True)
    outcome = await db.mutate_game(
        game_id, lambda game: guard(game, lambda g: game_state.update(g, fields))
    )
    game = outcome.unwrap()
    logger.info("Game %s updated by %s", game_id, current_user.id)
    return GameActionResponse(message=outcome.message, game=game)


@router.delete(
    "/{game_id}",
    response_model=GameActionResponse,
    operation_id="cancelGame",
    summary="Cancel a game (host or admin)",
)
async def cancel_game(game_id: str, current_user: CurrentUser) -> GameActionResponse:
    guard = _host_or_admin(current_user, "cancel")
    outcome = await db.mutate_game(
        game_id, lambda game: guard(game, game_state.cancel)
    )
    game = outcome.unwrap()
    return GameActionResponse(message=outcome.message, game=game)
