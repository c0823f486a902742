"""
SQLite database layer using aiosqlite.

Stores users, turfs, bookings and games (with their roster and join
requests in separate tables). Tables are created automatically on first
connect.

Concurrency:
  • every write runs inside ``transaction()``: an asyncio lock (one
    transaction at a time on the shared connection) plus BEGIN IMMEDIATE
    (SQLite reserved lock, serializes writers across processes)
  • game reads go through ``snapshot()`` so a game row and its member
    rows are always read from the same committed state
  • games carry a ``revision`` column; ``save_game`` is a compare-and-swap
    and ``mutate_game`` retries load-apply-save when it loses the race
  • ``create_booking`` checks availability and inserts in one transaction
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

import aiosqlite

from app.config import DB_PATH, GAME_WRITE_RETRIES
from app.models import (
    BLOCKING_BOOKING_STATUSES,
    Booking,
    BookingStats,
    BookingStatus,
    Game,
    GameStatus,
    JoinRequest,
    PaymentMethod,
    PaymentStatus,
    SkillLevel,
    Turf,
    User,
    UserRole,
)
from app.services import availability
from app.services.errors import (
    ConflictError,
    NotFoundError,
    Outcome,
    SlotUnavailableError,
    StaleWriteError,
)

logger = logging.getLogger(__name__)

# ── Module-level connection ───────────────────────────────────────────────

_db: aiosqlite.Connection | None = None
_write_lock: asyncio.Lock | None = None


async def init_db() -> None:
    """Open the database and create tables if they don't exist."""
    global _db, _write_lock
    db_path = Path(DB_PATH)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    # Implicit transactions disabled; writes manage BEGIN/COMMIT explicitly.
    _db = await aiosqlite.connect(str(db_path), isolation_level=None, timeout=30.0)
    _db.row_factory = aiosqlite.Row  # dict-like rows
    await _db.execute("PRAGMA journal_mode=WAL")
    await _db.execute("PRAGMA foreign_keys=ON")

    await _db.executescript(_SCHEMA)
    _write_lock = asyncio.Lock()
    logger.info("Database initialized at %s", db_path)


async def close_db() -> None:
    """Close the database connection."""
    global _db, _write_lock
    if _db is not None:
        await _db.close()
        _db = None
        _write_lock = None
        logger.info("Database connection closed")


def get_db() -> aiosqlite.Connection:
    """Return the active database connection (must call init_db first)."""
    assert _db is not None, "Database not initialized, call init_db() first"
    return _db


@asynccontextmanager
async def transaction() -> AsyncIterator[aiosqlite.Connection]:
    """Run a block as one IMMEDIATE transaction; roll back on any error."""
    db = get_db()
    assert _write_lock is not None
    async with _write_lock:
        await db.execute("BEGIN IMMEDIATE")
        try:
            yield db
        except BaseException:
            await db.rollback()
            raise
        else:
            await db.commit()


@asynccontextmanager
async def snapshot() -> AsyncIterator[aiosqlite.Connection]:
    """Multi-statement read that never sees another coroutine's open transaction."""
    db = get_db()
    assert _write_lock is not None
    async with _write_lock:
        yield db


# ── Schema ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id              TEXT PRIMARY KEY,
    email           TEXT UNIQUE NOT NULL,
    password_hash   TEXT NOT NULL,
    name            TEXT NOT NULL,
    phone           TEXT,
    role            TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'owner', 'admin')),
    is_verified     INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS turfs (
    id              TEXT PRIMARY KEY,
    owner_id        TEXT NOT NULL,
    name            TEXT NOT NULL,
    address         TEXT NOT NULL,
    lat             REAL,
    lng             REAL,
    description     TEXT,
    sports          TEXT NOT NULL,  -- JSON array
    amenities       TEXT NOT NULL,  -- JSON array
    images          TEXT NOT NULL,  -- JSON array
    price_per_hour  REAL NOT NULL,
    price_per_hour_weekend REAL,
    operating_hours TEXT NOT NULL,  -- JSON object keyed by weekday
    contact_info    TEXT NOT NULL,  -- JSON object
    rating          REAL NOT NULL DEFAULT 0,
    total_reviews   INTEGER NOT NULL DEFAULT 0,
    is_active       INTEGER NOT NULL DEFAULT 1,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    FOREIGN KEY (owner_id) REFERENCES users(id)
);

CREATE INDEX IF NOT EXISTS idx_turfs_owner ON turfs(owner_id);

CREATE TABLE IF NOT EXISTS bookings (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    turf_id         TEXT NOT NULL,
    date            TEXT NOT NULL,
    start_time      TEXT NOT NULL,
    end_time        TEXT NOT NULL,
    total_players   INTEGER NOT NULL,
    total_amount    REAL NOT NULL,
    status          TEXT NOT NULL DEFAULT 'pending'
                    CHECK (status IN ('pending', 'confirmed', 'cancelled', 'completed')),
    payment_status  TEXT NOT NULL DEFAULT 'pending'
                    CHECK (payment_status IN ('pending', 'paid', 'refunded')),
    payment_method  TEXT NOT NULL DEFAULT 'none'
                    CHECK (payment_method IN ('cash', 'online', 'wallet', 'none')),
    notes           TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    CHECK (start_time < end_time),
    FOREIGN KEY (user_id) REFERENCES users(id),
    FOREIGN KEY (turf_id) REFERENCES turfs(id)
);

CREATE INDEX IF NOT EXISTS idx_bookings_user ON bookings(user_id);
CREATE INDEX IF NOT EXISTS idx_bookings_turf_date ON bookings(turf_id, date);

CREATE TABLE IF NOT EXISTS games (
    id              TEXT PRIMARY KEY,
    host_id         TEXT NOT NULL,
    turf_id         TEXT NOT NULL,
    date            TEXT NOT NULL,
    start_time      TEXT NOT NULL,
    end_time        TEXT NOT NULL,
    sport           TEXT NOT NULL,
    format          TEXT NOT NULL,
    skill_level     TEXT NOT NULL DEFAULT 'all'
                    CHECK (skill_level IN ('beginner', 'intermediate', 'advanced', 'all')),
    current_players INTEGER NOT NULL DEFAULT 1,
    max_players     INTEGER NOT NULL,
    cost_per_person REAL NOT NULL DEFAULT 0,
    description     TEXT,
    notes           TEXT,
    is_private      INTEGER NOT NULL DEFAULT 0,
    status          TEXT NOT NULL DEFAULT 'open'
                    CHECK (status IN ('open', 'full', 'in_progress', 'completed', 'cancelled')),
    revision        INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL,
    CHECK (current_players <= max_players),
    FOREIGN KEY (host_id) REFERENCES users(id),
    FOREIGN KEY (turf_id) REFERENCES turfs(id)
);

CREATE INDEX IF NOT EXISTS idx_games_host ON games(host_id);
CREATE INDEX IF NOT EXISTS idx_games_date ON games(date);

CREATE TABLE IF NOT EXISTS game_players (
    game_id         TEXT NOT NULL,
    user_id         TEXT NOT NULL,
    position        INTEGER NOT NULL,
    PRIMARY KEY (game_id, user_id),
    FOREIGN KEY (game_id) REFERENCES games(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS game_join_requests (
    game_id         TEXT NOT NULL,
    user_id         TEXT NOT NULL,
    position        INTEGER NOT NULL,
    requested_at    TEXT NOT NULL,
    status          TEXT NOT NULL DEFAULT 'pending',
    PRIMARY KEY (game_id, user_id),
    FOREIGN KEY (game_id) REFERENCES games(id) ON DELETE CASCADE
);
"""


# ── Helpers ───────────────────────────────────────────────────────────────


def _json(value: Any) -> str:
    return json.dumps(value if value is not None else [])


def _from_json(raw: str | None, default: Any) -> Any:
    if raw is None:
        return default
    return json.loads(raw)


def _iso(dt: datetime) -> str:
    return dt.isoformat()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_user(row: aiosqlite.Row) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        phone=row["phone"],
        role=row["role"],
        is_verified=bool(row["is_verified"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_turf(row: aiosqlite.Row) -> Turf:
    coordinates = None
    if row["lat"] is not None and row["lng"] is not None:
        coordinates = {"lat": row["lat"], "lng": row["lng"]}
    return Turf(
        id=row["id"],
        owner_id=row["owner_id"],
        name=row["name"],
        address=row["address"],
        coordinates=coordinates,
        description=row["description"],
        sports=_from_json(row["sports"], []),
        amenities=_from_json(row["amenities"], []),
        images=_from_json(row["images"], []),
        price_per_hour=row["price_per_hour"],
        price_per_hour_weekend=row["price_per_hour_weekend"],
        operating_hours=_from_json(row["operating_hours"], {}),
        contact_info=_from_json(row["contact_info"], {}),
        rating=row["rating"],
        total_reviews=row["total_reviews"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_booking(row: aiosqlite.Row) -> Booking:
    return Booking(
        id=row["id"],
        user_id=row["user_id"],
        turf_id=row["turf_id"],
        date=row["date"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        total_players=row["total_players"],
        total_amount=row["total_amount"],
        status=row["status"],
        payment_status=row["payment_status"],
        payment_method=row["payment_method"],
        notes=row["notes"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_game(
    row: aiosqlite.Row, confirmed: list[str], requests: list[JoinRequest]
) -> Game:
    return Game(
        id=row["id"],
        host_id=row["host_id"],
        turf_id=row["turf_id"],
        date=row["date"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        sport=row["sport"],
        format=row["format"],
        skill_level=row["skill_level"],
        current_players=row["current_players"],
        max_players=row["max_players"],
        cost_per_person=row["cost_per_person"],
        description=row["description"],
        notes=row["notes"],
        is_private=bool(row["is_private"]),
        confirmed_players=confirmed,
        join_requests=requests,
        status=row["status"],
        revision=row["revision"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


# ══════════════════════════════════════════════════════════════════════════
#                    USER REPOSITORY
# ══════════════════════════════════════════════════════════════════════════


async def create_user(
    email: str,
    password_hash: str,
    name: str,
    *,
    phone: str | None = None,
    role: UserRole = UserRole.user,
) -> User:
    """Insert a new user. Raises ConflictError if the email is taken."""
    user_id = str(uuid4())
    now = _now_iso()
    async with transaction() as db:
        async with db.execute(
            "SELECT 1 FROM users WHERE email = ?", (email,)
        ) as cur:
            if await cur.fetchone():
                raise ConflictError("User with this email already exists")
        await db.execute(
            """
            INSERT INTO users (
                id, email, password_hash, name, phone, role, is_verified,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?)
            """,
            (user_id, email, password_hash, name, phone, UserRole(role).value, now, now),
        )
    logger.info("User registered id=%s role=%s", user_id, UserRole(role).value)
    return await get_user(user_id)  # type: ignore[return-value]


async def get_user(user_id: str) -> User | None:
    db = get_db()
    async with db.execute("SELECT * FROM users WHERE id = ?", (user_id,)) as cur:
        row = await cur.fetchone()
    return _row_to_user(row) if row else None


async def get_user_credentials(email: str) -> tuple[User, str] | None:
    """Return (user, password_hash) for login, or None."""
    db = get_db()
    async with db.execute("SELECT * FROM users WHERE email = ?", (email,)) as cur:
        row = await cur.fetchone()
    if row is None:
        return None
    return _row_to_user(row), row["password_hash"]


# ══════════════════════════════════════════════════════════════════════════
#                    TURF REPOSITORY
# ══════════════════════════════════════════════════════════════════════════

# Turf fields that map 1:1 onto a column.
_TURF_SCALAR_COLUMNS = (
    "name", "address", "description", "price_per_hour",
    "price_per_hour_weekend", "is_active",
)
_TURF_JSON_COLUMNS = (
    "sports", "amenities", "images", "operating_hours", "contact_info",
)


def _turf_columns(fields: dict[str, Any]) -> dict[str, Any]:
    """Translate model-level turf fields into column values."""
    columns: dict[str, Any] = {}
    for key in _TURF_SCALAR_COLUMNS:
        if key in fields:
            value = fields[key]
            columns[key] = int(value) if key == "is_active" else value
    for key in _TURF_JSON_COLUMNS:
        if key in fields:
            columns[key] = json.dumps(fields[key])
    if "coordinates" in fields:
        coords = fields["coordinates"] or {}
        columns["lat"] = coords.get("lat")
        columns["lng"] = coords.get("lng")
    return columns


async def create_turf(owner_id: str, fields: dict[str, Any]) -> Turf:
    """Insert a turf from a ``TurfCreate.model_dump()``-shaped dict."""
    turf_id = str(uuid4())
    now = _now_iso()
    columns = {
        "sports": _json([]),
        "amenities": _json([]),
        "images": _json([]),
        "operating_hours": json.dumps({}),
        "contact_info": json.dumps({}),
        **_turf_columns(fields),
        "id": turf_id,
        "owner_id": owner_id,
        "created_at": now,
        "updated_at": now,
    }
    names = ", ".join(columns)
    placeholders = ", ".join("?" for _ in columns)
    async with transaction() as db:
        await db.execute(
            f"INSERT INTO turfs ({names}) VALUES ({placeholders})",
            tuple(columns.values()),
        )
    logger.info("Turf created id=%s owner=%s", turf_id, owner_id)
    return await get_turf(turf_id)  # type: ignore[return-value]


async def get_turf(turf_id: str) -> Turf | None:
    db = get_db()
    async with db.execute("SELECT * FROM turfs WHERE id = ?", (turf_id,)) as cur:
        row = await cur.fetchone()
    return _row_to_turf(row) if row else None


async def update_turf(turf_id: str, fields: dict[str, Any]) -> Turf | None:
    """Apply a partial update; keys absent from ``fields`` are untouched."""
    columns = _turf_columns(fields)
    if columns:
        columns["updated_at"] = _now_iso()
        assignments = ", ".join(f"{name} = ?" for name in columns)
        async with transaction() as db:
            await db.execute(
                f"UPDATE turfs SET {assignments} WHERE id = ?",
                (*columns.values(), turf_id),
            )
    return await get_turf(turf_id)


async def list_turfs(
    *,
    query: str | None = None,
    sport: str | None = None,
    price_min: float | None = None,
    price_max: float | None = None,
    min_rating: float | None = None,
    amenities: Iterable[str] = (),
) -> list[Turf]:
    """Active turfs matching every given filter, best rated first."""
    db = get_db()
    sql = "SELECT * FROM turfs WHERE is_active = 1"
    params: list = []
    if query:
        sql += " AND (name LIKE ? OR address LIKE ? OR description LIKE ?)"
        term = f"%{query}%"
        params.extend([term, term, term])
    if price_min is not None:
        sql += " AND price_per_hour >= ?"
        params.append(price_min)
    if price_max is not None:
        sql += " AND price_per_hour <= ?"
        params.append(price_max)
    if min_rating is not None:
        sql += " AND rating >= ?"
        params.append(min_rating)
    sql += " ORDER BY rating DESC, name ASC"

    async with db.execute(sql, params) as cur:
        rows = await cur.fetchall()
    turfs = [_row_to_turf(r) for r in rows]

    # sports / amenities live in JSON arrays, match them exactly here
    if sport:
        turfs = [t for t in turfs if sport in t.sports]
    wanted = set(amenities)
    if wanted:
        turfs = [t for t in turfs if wanted.issubset(t.amenities)]
    return turfs


async def list_turfs_by_owner(owner_id: str) -> list[Turf]:
    db = get_db()
    async with db.execute(
        "SELECT * FROM turfs WHERE owner_id = ? ORDER BY created_at DESC",
        (owner_id,),
    ) as cur:
        rows = await cur.fetchall()
    return [_row_to_turf(r) for r in rows]


# ══════════════════════════════════════════════════════════════════════════
#                    BOOKING REPOSITORY
# ══════════════════════════════════════════════════════════════════════════


async def _bookings_for_turf_date(
    db: aiosqlite.Connection,
    turf_id: str,
    date: str,
    statuses: Iterable[BookingStatus],
) -> list[Booking]:
    values = [BookingStatus(s).value for s in statuses]
    placeholders = ", ".join("?" for _ in values)
    async with db.execute(
        f"""
        SELECT * FROM bookings
        WHERE turf_id = ? AND date = ? AND status IN ({placeholders})
        ORDER BY start_time ASC
        """,
        (turf_id, date, *values),
    ) as cur:
        rows = await cur.fetchall()
    return [_row_to_booking(r) for r in rows]


async def find_bookings_for_turf_date(
    turf_id: str,
    date: str,
    statuses: Iterable[BookingStatus] = BLOCKING_BOOKING_STATUSES,
) -> list[Booking]:
    """Bookings of one turf on one date with the given statuses."""
    return await _bookings_for_turf_date(get_db(), turf_id, date, statuses)


async def check_availability(
    turf_id: str,
    date: str,
    start_time: str,
    end_time: str,
    exclude_booking_id: str | None = None,
) -> bool:
    """True if no pending/confirmed booking overlaps the interval."""
    existing = await find_bookings_for_turf_date(turf_id, date)
    return availability.is_available(
        existing, start_time, end_time, exclude_booking_id=exclude_booking_id
    )


async def create_booking(
    *,
    user_id: str,
    turf_id: str,
    date: str,
    start_time: str,
    end_time: str,
    total_players: int,
    total_amount: float,
    payment_method: PaymentMethod = PaymentMethod.none,
    notes: str | None = None,
) -> Booking:
    """
    Insert a pending booking if its interval is still free.

    The availability check and the insert share one IMMEDIATE transaction,
    so two requests for the same slot cannot both succeed.

    Raises SlotUnavailableError when the interval overlaps a pending or
    confirmed booking.
    """
    booking_id = str(uuid4())
    now = _now_iso()
    async with transaction() as db:
        existing = await _bookings_for_turf_date(
            db, turf_id, date, BLOCKING_BOOKING_STATUSES
        )
        if not availability.is_available(existing, start_time, end_time):
            raise SlotUnavailableError()
        await db.execute(
            """
            INSERT INTO bookings (
                id, user_id, turf_id, date, start_time, end_time,
                total_players, total_amount, status, payment_status,
                payment_method, notes, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                booking_id, user_id, turf_id, date, start_time, end_time,
                total_players, total_amount,
                BookingStatus.pending.value, PaymentStatus.pending.value,
                PaymentMethod(payment_method).value, notes,
                now, now,
            ),
        )
    logger.info(
        "Booking created id=%s turf=%s date=%s %s-%s",
        booking_id, turf_id, date, start_time, end_time,
    )
    return await get_booking(booking_id)  # type: ignore[return-value]


async def get_booking(booking_id: str) -> Booking | None:
    db = get_db()
    async with db.execute("SELECT * FROM bookings WHERE id = ?", (booking_id,)) as cur:
        row = await cur.fetchone()
    return _row_to_booking(row) if row else None


async def update_booking_status(
    booking_id: str,
    status: BookingStatus,
    payment_status: PaymentStatus | None = None,
) -> Booking:
    """
    Change a booking's status.

    Re-activating a cancelled or completed booking re-checks its interval
    (ignoring the booking itself) within the same transaction.
    """
    status = BookingStatus(status)
    async with transaction() as db:
        async with db.execute(
            "SELECT * FROM bookings WHERE id = ?", (booking_id,)
        ) as cur:
            row = await cur.fetchone()
        if row is None:
            raise NotFoundError("Booking not found")
        booking = _row_to_booking(row)

        reactivating = (
            status in BLOCKING_BOOKING_STATUSES
            and booking.status not in BLOCKING_BOOKING_STATUSES
        )
        if reactivating:
            existing = await _bookings_for_turf_date(
                db, booking.turf_id, booking.date, BLOCKING_BOOKING_STATUSES
            )
            if not availability.is_available(
                existing, booking.start_time, booking.end_time,
                exclude_booking_id=booking.id,
            ):
                raise SlotUnavailableError()

        await db.execute(
            """
            UPDATE bookings SET status = ?, payment_status = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                status.value,
                PaymentStatus(payment_status or booking.payment_status).value,
                _now_iso(),
                booking_id,
            ),
        )
    logger.info("Booking %s status %s -> %s", booking_id, booking.status.value, status.value)
    return await get_booking(booking_id)  # type: ignore[return-value]


async def list_bookings_for_user(
    user_id: str, *, status: BookingStatus | None = None, limit: int | None = None
) -> list[Booking]:
    db = get_db()
    sql = "SELECT * FROM bookings WHERE user_id = ?"
    params: list = [user_id]
    if status is not None:
        sql += " AND status = ?"
        params.append(BookingStatus(status).value)
    sql += " ORDER BY created_at DESC"
    if limit:
        sql += " LIMIT ?"
        params.append(limit)

    async with db.execute(sql, params) as cur:
        rows = await cur.fetchall()
    return [_row_to_booking(r) for r in rows]


async def list_bookings_for_turf(
    turf_id: str, *, date: str | None = None, status: BookingStatus | None = None
) -> list[Booking]:
    db = get_db()
    sql = "SELECT * FROM bookings WHERE turf_id = ?"
    params: list = [turf_id]
    if date is not None:
        sql += " AND date = ?"
        params.append(date)
    if status is not None:
        sql += " AND status = ?"
        params.append(BookingStatus(status).value)
    sql += " ORDER BY date ASC, start_time ASC"

    async with db.execute(sql, params) as cur:
        rows = await cur.fetchall()
    return [_row_to_booking(r) for r in rows]


async def booking_stats(
    turf_id: str, *, date_from: str | None = None, date_to: str | None = None
) -> BookingStats:
    """Totals for one turf; revenue counts completed bookings only."""
    db = get_db()
    sql = """
        SELECT
            COUNT(*) AS total_bookings,
            COALESCE(SUM(CASE WHEN status = 'completed' THEN total_amount ELSE 0 END), 0)
                AS total_revenue,
            COALESCE(AVG(total_amount), 0) AS avg_booking_value,
            COUNT(CASE WHEN status = 'confirmed' THEN 1 END) AS confirmed_bookings,
            COUNT(CASE WHEN status = 'cancelled' THEN 1 END) AS cancelled_bookings
        FROM bookings WHERE turf_id = ?
    """
    params: list = [turf_id]
    if date_from is not None:
        sql += " AND date >= ?"
        params.append(date_from)
    if date_to is not None:
        sql += " AND date <= ?"
        params.append(date_to)

    async with db.execute(sql, params) as cur:
        row = await cur.fetchone()
    return BookingStats(**dict(row))


# ══════════════════════════════════════════════════════════════════════════
#                    GAME REPOSITORY
# ══════════════════════════════════════════════════════════════════════════


async def _load_members(
    db: aiosqlite.Connection, game_id: str
) -> tuple[list[str], list[JoinRequest]]:
    async with db.execute(
        "SELECT user_id FROM game_players WHERE game_id = ? ORDER BY position",
        (game_id,),
    ) as cur:
        confirmed = [r["user_id"] for r in await cur.fetchall()]
    async with db.execute(
        """
        SELECT user_id, requested_at, status FROM game_join_requests
        WHERE game_id = ? ORDER BY position
        """,
        (game_id,),
    ) as cur:
        requests = [
            JoinRequest(
                user_id=r["user_id"],
                requested_at=r["requested_at"],
                status=r["status"],
            )
            for r in await cur.fetchall()
        ]
    return confirmed, requests


async def _write_members(db: aiosqlite.Connection, game: Game) -> None:
    await db.execute("DELETE FROM game_players WHERE game_id = ?", (game.id,))
    await db.execute("DELETE FROM game_join_requests WHERE game_id = ?", (game.id,))
    await db.executemany(
        "INSERT INTO game_players (game_id, user_id, position) VALUES (?, ?, ?)",
        [(game.id, user_id, i) for i, user_id in enumerate(game.confirmed_players)],
    )
    await db.executemany(
        """
        INSERT INTO game_join_requests (game_id, user_id, position, requested_at, status)
        VALUES (?, ?, ?, ?, ?)
        """,
        [
            (game.id, r.user_id, i, _iso(r.requested_at), r.status.value)
            for i, r in enumerate(game.join_requests)
        ],
    )


async def _games_from_rows(
    db: aiosqlite.Connection, rows: Iterable[aiosqlite.Row]
) -> list[Game]:
    games = []
    for row in rows:
        confirmed, requests = await _load_members(db, row["id"])
        games.append(_row_to_game(row, confirmed, requests))
    return games


async def create_game(game: Game) -> Game:
    """Insert a freshly built game (see ``game_state.new_game``)."""
    async with transaction() as db:
        await db.execute(
            """
            INSERT INTO games (
                id, host_id, turf_id, date, start_time, end_time,
                sport, format, skill_level, current_players, max_players,
                cost_per_person, description, notes, is_private, status,
                revision, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                game.id, game.host_id, game.turf_id, game.date,
                game.start_time, game.end_time, game.sport, game.format,
                SkillLevel(game.skill_level).value, game.current_players, game.max_players,
                game.cost_per_person, game.description, game.notes,
                int(game.is_private), GameStatus(game.status).value, game.revision,
                _iso(game.created_at), _iso(game.updated_at),
            ),
        )
        await _write_members(db, game)
    logger.info("Game created id=%s host=%s turf=%s", game.id, game.host_id, game.turf_id)
    return game


async def get_game(game_id: str) -> Game | None:
    async with snapshot() as db:
        async with db.execute("SELECT * FROM games WHERE id = ?", (game_id,)) as cur:
            row = await cur.fetchone()
        if row is None:
            return None
        confirmed, requests = await _load_members(db, game_id)
    return _row_to_game(row, confirmed, requests)


async def save_game(game: Game) -> Game:
    """
    Persist ``game`` if nobody saved it since it was loaded.

    Compares ``game.revision`` with the stored revision and bumps it.
    Raises StaleWriteError on a lost race, NotFoundError if the game
    disappeared.
    """
    async with transaction() as db:
        cur = await db.execute(
            """
            UPDATE games SET
                date = ?, start_time = ?, end_time = ?, sport = ?, format = ?,
                skill_level = ?, current_players = ?, max_players = ?,
                cost_per_person = ?, description = ?, notes = ?, is_private = ?,
                status = ?, revision = revision + 1, updated_at = ?
            WHERE id = ? AND revision = ?
            """,
            (
                game.date, game.start_time, game.end_time, game.sport, game.format,
                SkillLevel(game.skill_level).value, game.current_players, game.max_players,
                game.cost_per_person, game.description, game.notes,
                int(game.is_private), GameStatus(game.status).value, _iso(game.updated_at),
                game.id, game.revision,
            ),
        )
        if cur.rowcount == 0:
            async with db.execute("SELECT 1 FROM games WHERE id = ?", (game.id,)) as check:
                exists = await check.fetchone()
            if not exists:
                raise NotFoundError("Game not found")
            raise StaleWriteError(f"Game {game.id} was modified concurrently")
        await _write_members(db, game)
    return game.model_copy(update={"revision": game.revision + 1})


async def mutate_game(
    game_id: str,
    operation: Callable[[Game], Outcome[Game]],
    *,
    attempts: int | None = None,
) -> Outcome[Game]:
    """
    Load a game, apply a state-machine operation and save the result.

    Reloads and re-applies the operation when another writer saved the
    game first, so concurrent joins never overwrite each other.
    """
    attempts = attempts or GAME_WRITE_RETRIES
    for attempt in range(1, attempts + 1):
        game = await get_game(game_id)
        if game is None:
            return Outcome.fail(NotFoundError("Game not found"))

        outcome = operation(game)
        if not outcome.success:
            return outcome

        try:
            saved = await save_game(outcome.value)  # type: ignore[arg-type]
        except StaleWriteError:
            logger.warning(
                "Write conflict on game %s (attempt %d/%d), retrying",
                game_id, attempt, attempts,
            )
            continue
        return Outcome.ok(saved, outcome.message)

    return Outcome.fail(
        StaleWriteError(f"Game {game_id} is too busy, please retry")
    )


async def list_open_games(
    *,
    sport: str | None = None,
    skill_level: str | None = None,
    date_from: str | None = None,
    limit: int | None = 20,
) -> list[Game]:
    """Public games that are open with spare capacity, soonest first."""
    db = get_db()
    sql = """
        SELECT * FROM games
        WHERE status = ? AND is_private = 0 AND current_players < max_players
    """
    params: list = [GameStatus.open.value]
    if sport:
        sql += " AND sport = ?"
        params.append(sport)
    if skill_level and skill_level != "all":
        sql += " AND (skill_level = ? OR skill_level = 'all')"
        params.append(skill_level)
    if date_from:
        sql += " AND date >= ?"
        params.append(date_from)
    sql += " ORDER BY date ASC, start_time ASC"
    if limit:
        sql += " LIMIT ?"
        params.append(limit)

    async with snapshot():
        async with db.execute(sql, params) as cur:
            rows = await cur.fetchall()
        return await _games_from_rows(db, rows)


async def list_games_by_host(host_id: str) -> list[Game]:
    db = get_db()
    async with snapshot():
        async with db.execute(
            "SELECT * FROM games WHERE host_id = ? ORDER BY created_at DESC",
            (host_id,),
        ) as cur:
            rows = await cur.fetchall()
        return await _games_from_rows(db, rows)
