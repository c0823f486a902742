"""
Game state machine.

Owns the lifecycle of a game (open -> full -> in_progress / completed /
cancelled) and its two participant lists: confirmed players and pending
join requests.

Every operation takes a Game snapshot and returns an Outcome holding a new
Game; the input is never mutated. Persisting the result (and serializing
concurrent writers) is the caller's job, see ``app.db.mutate_game``.

Invariants kept by every operation:
- confirmed_players has no duplicates and never contains the host
- a user is in at most one of confirmed_players / join_requests
- len(confirmed_players) + 1 <= max_players
- status is full iff the roster (host included) has reached max_players,
  for as long as the game is open or full
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from app.models import (
    ACTIVE_GAME_STATUSES,
    Game,
    GameStatus,
    JoinRequest,
    SkillLevel,
)
from app.services.errors import (
    AlreadyJoinedError,
    GameClosedError,
    GameFullError,
    NoPendingRequestError,
    NotAMemberError,
    NotHostError,
    Outcome,
    RequestAlreadyPendingError,
    ValidationError,
)
from app.services.time_intervals import validate_interval

logger = logging.getLogger(__name__)

# Fields a host (or admin) may change through update().
UPDATABLE_FIELDS = frozenset({
    "date",
    "start_time",
    "end_time",
    "sport",
    "format",
    "skill_level",
    "max_players",
    "cost_per_person",
    "description",
    "notes",
    "is_private",
    "status",
})

# Fields a host may reset to null.
CLEARABLE_FIELDS = frozenset({"description", "notes"})

MIN_PLAYERS = 2
MAX_PLAYERS = 50


def _now() -> datetime:
    return datetime.now(timezone.utc)


def roster_size(game: Game) -> int:
    """Confirmed players plus the host."""
    return len(game.confirmed_players) + 1


def has_capacity(game: Game) -> bool:
    return roster_size(game) < game.max_players


def _derive_status(confirmed: list[str], max_players: int) -> GameStatus:
    return GameStatus.full if len(confirmed) + 1 >= max_players else GameStatus.open


def _with_roster(
    game: Game,
    confirmed: list[str],
    requests: list[JoinRequest],
    now: datetime | None,
) -> Game:
    """Copy of ``game`` with new lists and recomputed counters/status."""
    return game.model_copy(
        update={
            "confirmed_players": confirmed,
            "join_requests": requests,
            "current_players": len(confirmed) + 1,
            "status": _derive_status(confirmed, game.max_players),
            "updated_at": now or _now(),
        }
    )


def new_game(
    *,
    host_id: str,
    turf_id: str,
    date: str,
    start_time: str,
    end_time: str,
    sport: str,
    format: str,
    max_players: int,
    skill_level: SkillLevel = SkillLevel.all,
    cost_per_person: float = 0,
    description: str | None = None,
    notes: str | None = None,
    is_private: bool = False,
    game_id: str | None = None,
    now: datetime | None = None,
) -> Game:
    """Build a fresh open game; the host is the first (implicit) player."""
    validate_interval(start_time, end_time)
    if not MIN_PLAYERS <= max_players <= MAX_PLAYERS:
        raise ValidationError(
            f"max_players must be between {MIN_PLAYERS} and {MAX_PLAYERS}"
        )
    created = now or _now()
    return Game(
        id=game_id or str(uuid4()),
        host_id=host_id,
        turf_id=turf_id,
        date=date,
        start_time=start_time,
        end_time=end_time,
        sport=sport,
        format=format,
        skill_level=skill_level,
        current_players=1,
        max_players=max_players,
        cost_per_person=cost_per_person,
        description=description,
        notes=notes,
        is_private=is_private,
        confirmed_players=[],
        join_requests=[],
        status=GameStatus.open,
        revision=0,
        created_at=created,
        updated_at=created,
    )


# -------------------------------------------------
# Membership
# -------------------------------------------------

def join(game: Game, user_id: str, *, now: datetime | None = None) -> Outcome[Game]:
    """
    Join a public game directly, or queue a join request for a private one.

    Checks, first failure wins: open status, spare capacity, not the host,
    not already confirmed, not already pending.
    """
    if game.status != GameStatus.open:
        return Outcome.fail(GameClosedError())
    if not has_capacity(game):
        return Outcome.fail(GameFullError())
    if user_id == game.host_id:
        return Outcome.fail(AlreadyJoinedError("The host is already part of this game"))
    if user_id in game.confirmed_players:
        return Outcome.fail(AlreadyJoinedError())
    if user_id in game.pending_user_ids:
        return Outcome.fail(RequestAlreadyPendingError())

    if game.is_private:
        request = JoinRequest(user_id=user_id, requested_at=now or _now())
        updated = game.model_copy(
            update={
                "join_requests": [*game.join_requests, request],
                "updated_at": now or _now(),
            }
        )
        logger.info("Join request queued game=%s user=%s", game.id, user_id)
        return Outcome.ok(updated, "Join request sent to game host")

    updated = _with_roster(
        game, [*game.confirmed_players, user_id], list(game.join_requests), now
    )
    logger.info(
        "Player joined game=%s user=%s roster=%d/%d",
        game.id, user_id, updated.current_players, updated.max_players,
    )
    return Outcome.ok(updated, "Successfully joined the game")


def leave(game: Game, user_id: str, *, now: datetime | None = None) -> Outcome[Game]:
    """Drop ``user_id`` from the roster and from pending requests."""
    if game.status not in ACTIVE_GAME_STATUSES:
        return Outcome.fail(GameClosedError(f"Game is already {game.status.value}"))

    confirmed = [p for p in game.confirmed_players if p != user_id]
    requests = [r for r in game.join_requests if r.user_id != user_id]
    if len(confirmed) == len(game.confirmed_players) and len(requests) == len(
        game.join_requests
    ):
        return Outcome.fail(NotAMemberError())

    updated = _with_roster(game, confirmed, requests, now)
    logger.info("Player left game=%s user=%s", game.id, user_id)
    return Outcome.ok(updated, "Successfully left the game")


def respond_to_join_request(
    game: Game,
    host_id: str,
    target_user_id: str,
    approve: bool,
    *,
    now: datetime | None = None,
) -> Outcome[Game]:
    """Host approves (moves to roster) or declines a pending join request."""
    if game.status not in ACTIVE_GAME_STATUSES:
        return Outcome.fail(GameClosedError(f"Game is already {game.status.value}"))
    if host_id != game.host_id:
        return Outcome.fail(NotHostError())
    if target_user_id not in game.pending_user_ids:
        return Outcome.fail(NoPendingRequestError())

    requests = [r for r in game.join_requests if r.user_id != target_user_id]

    if not approve:
        updated = game.model_copy(
            update={"join_requests": requests, "updated_at": now or _now()}
        )
        logger.info("Join request declined game=%s user=%s", game.id, target_user_id)
        return Outcome.ok(updated, "Join request declined")

    if game.status != GameStatus.open or not has_capacity(game):
        return Outcome.fail(GameFullError())

    updated = _with_roster(
        game, [*game.confirmed_players, target_user_id], requests, now
    )
    logger.info("Join request approved game=%s user=%s", game.id, target_user_id)
    return Outcome.ok(updated, "Player approved and added to the game")


# -------------------------------------------------
# Host-driven changes
# -------------------------------------------------

def update(
    game: Game, fields: dict[str, Any], *, now: datetime | None = None
) -> Outcome[Game]:
    """
    Merge whitelisted fields into the game.

    open/full is always derived from capacity; an explicit in_progress,
    completed or cancelled status is applied as given. Authorization is
    the caller's concern.
    """
    if game.status not in ACTIVE_GAME_STATUSES:
        return Outcome.fail(
            GameClosedError(f"Cannot update a game that is {game.status.value}")
        )

    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        return Outcome.fail(
            ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        )
    changes = {
        k: v for k, v in fields.items() if v is not None or k in CLEARABLE_FIELDS
    }

    start = changes.get("start_time", game.start_time)
    end = changes.get("end_time", game.end_time)
    try:
        validate_interval(start, end)
    except ValidationError as exc:
        return Outcome.fail(exc)

    max_players = changes.get("max_players", game.max_players)
    if not MIN_PLAYERS <= max_players <= MAX_PLAYERS:
        return Outcome.fail(
            ValidationError(
                f"max_players must be between {MIN_PLAYERS} and {MAX_PLAYERS}"
            )
        )
    if max_players < roster_size(game):
        return Outcome.fail(
            ValidationError(
                f"max_players cannot be below the current roster of {roster_size(game)}"
            )
        )

    requested = changes.pop("status", None)
    if requested is not None:
        requested = GameStatus(requested)
    if requested is None or requested in ACTIVE_GAME_STATUSES:
        changes["status"] = _derive_status(game.confirmed_players, max_players)
    else:
        changes["status"] = requested
    changes["updated_at"] = now or _now()

    updated = game.model_copy(update=changes)
    return Outcome.ok(updated, "Game updated successfully")


def cancel(game: Game, *, now: datetime | None = None) -> Outcome[Game]:
    if game.status not in ACTIVE_GAME_STATUSES:
        return Outcome.fail(
            GameClosedError(f"Cannot cancel a game that is {game.status.value}")
        )
    updated = game.model_copy(
        update={"status": GameStatus.cancelled, "updated_at": now or _now()}
    )
    logger.info("Game cancelled game=%s", game.id)
    return Outcome.ok(updated, "Game cancelled successfully")


# -------------------------------------------------
# Read path
# -------------------------------------------------

def is_participant(game: Game, user_id: str | None) -> bool:
    if user_id is None:
        return False
    return (
        user_id == game.host_id
        or user_id in game.confirmed_players
        or user_id in game.pending_user_ids
    )


def can_view(game: Game, viewer_id: str | None, *, is_admin: bool = False) -> bool:
    """Public games are visible to everyone; private ones to participants and admins."""
    if not game.is_private or is_admin:
        return True
    return is_participant(game, viewer_id)
