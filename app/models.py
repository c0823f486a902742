"""Pydantic models for the Turf Booking API."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, StrictBool

_DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
_TIME_PATTERN = r"^\d{2}:\d{2}$"


# ── Enums ─────────────────────────────────────────────────────────────────


class UserRole(str, enum.Enum):
    user = "user"
    owner = "owner"
    admin = "admin"


class BookingStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"


# Statuses that hold a turf interval; only these can conflict.
BLOCKING_BOOKING_STATUSES = (BookingStatus.pending, BookingStatus.confirmed)


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    refunded = "refunded"


class PaymentMethod(str, enum.Enum):
    cash = "cash"
    online = "online"
    wallet = "wallet"
    none = "none"


class SkillLevel(str, enum.Enum):
    beginner = "beginner"
    intermediate = "intermediate"
    advanced = "advanced"
    all = "all"


class GameStatus(str, enum.Enum):
    open = "open"
    full = "full"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


# Statuses in which membership operations are still allowed.
ACTIVE_GAME_STATUSES = (GameStatus.open, GameStatus.full)


class JoinRequestStatus(str, enum.Enum):
    pending = "pending"


# ── Users ─────────────────────────────────────────────────────────────────


class User(BaseModel):
    """Registered account (password hash is never part of the model)."""
    id: str
    email: EmailStr
    name: str
    phone: Optional[str] = None
    role: UserRole = UserRole.user
    is_verified: bool = False
    created_at: datetime
    updated_at: datetime


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = Field(None, pattern=r"^\+?[1-9]\d{1,14}$")
    role: Literal["user", "owner"] = "user"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    message: str
    user: User
    token: str


# ── Turfs ─────────────────────────────────────────────────────────────────


class Coordinates(BaseModel):
    """Geographic coordinates."""
    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lng: float = Field(..., ge=-180, le=180, description="Longitude")


class DayHours(BaseModel):
    """Opening hours for one weekday."""
    open: str = Field(..., pattern=_TIME_PATTERN)
    close: str = Field(..., pattern=_TIME_PATTERN)
    is_open: bool = True


class ContactInfo(BaseModel):
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    website: Optional[str] = None


class Turf(BaseModel):
    """A bookable sports facility."""
    id: str
    owner_id: str
    name: str
    address: str
    coordinates: Optional[Coordinates] = None
    description: Optional[str] = None
    sports: List[str] = Field(default_factory=list)
    amenities: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    price_per_hour: float
    price_per_hour_weekend: Optional[float] = None
    operating_hours: Dict[str, DayHours] = Field(
        default_factory=dict, description="Keyed by lowercase weekday name"
    )
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    rating: float = 0
    total_reviews: int = 0
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


class TurfCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    address: str = Field(..., min_length=5, max_length=500)
    coordinates: Optional[Coordinates] = None
    description: Optional[str] = Field(None, max_length=1000)
    sports: List[str] = Field(..., min_length=1)
    amenities: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    price_per_hour: float = Field(..., gt=0)
    price_per_hour_weekend: Optional[float] = Field(None, gt=0)
    operating_hours: Dict[str, DayHours] = Field(default_factory=dict)
    contact_info: ContactInfo = Field(default_factory=ContactInfo)


class TurfUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    address: Optional[str] = Field(None, min_length=5, max_length=500)
    coordinates: Optional[Coordinates] = None
    description: Optional[str] = Field(None, max_length=1000)
    sports: Optional[List[str]] = None
    amenities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    price_per_hour: Optional[float] = Field(None, gt=0)
    price_per_hour_weekend: Optional[float] = Field(None, gt=0)
    operating_hours: Optional[Dict[str, DayHours]] = None
    contact_info: Optional[ContactInfo] = None
    is_active: Optional[bool] = None


class NearbyTurf(BaseModel):
    turf: Turf
    distance_km: float


# ── Bookings ──────────────────────────────────────────────────────────────


class Booking(BaseModel):
    """A reserved [start_time, end_time) interval on a turf."""
    id: str
    user_id: str
    turf_id: str
    date: str = Field(..., description="Calendar date (YYYY-MM-DD)")
    start_time: str = Field(..., description="Start time (HH:MM)")
    end_time: str = Field(..., description="End time (HH:MM), same day")
    total_players: int
    total_amount: float
    status: BookingStatus = BookingStatus.pending
    payment_status: PaymentStatus = PaymentStatus.pending
    payment_method: PaymentMethod = PaymentMethod.none
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BookingCreate(BaseModel):
    turf_id: str
    date: str = Field(..., pattern=_DATE_PATTERN)
    start_time: str = Field(..., pattern=_TIME_PATTERN)
    end_time: str = Field(..., pattern=_TIME_PATTERN)
    total_players: int = Field(..., ge=1, le=50)
    notes: Optional[str] = Field(None, max_length=500)
    payment_method: PaymentMethod = PaymentMethod.none


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    payment_status: Optional[PaymentStatus] = None


class Slot(BaseModel):
    """A candidate booking interval."""
    start_time: str
    end_time: str


class AvailableSlotsResponse(BaseModel):
    turf_id: str
    date: str
    slots: List[Slot]


class BookingStats(BaseModel):
    total_bookings: int = 0
    total_revenue: float = 0
    avg_booking_value: float = 0
    confirmed_bookings: int = 0
    cancelled_bookings: int = 0


# ── Games ─────────────────────────────────────────────────────────────────


class JoinRequest(BaseModel):
    """A pending request to join a private game."""
    user_id: str
    requested_at: datetime
    status: JoinRequestStatus = JoinRequestStatus.pending


class Game(BaseModel):
    """
    A host-organized pickup session.

    ``max_players`` includes the host; ``confirmed_players`` never does,
    so ``current_players == len(confirmed_players) + 1``.
    """
    id: str
    host_id: str
    turf_id: str
    date: str
    start_time: str
    end_time: str
    sport: str
    format: str
    skill_level: SkillLevel = SkillLevel.all
    current_players: int = 1
    max_players: int
    cost_per_person: float = 0
    description: Optional[str] = None
    notes: Optional[str] = None
    is_private: bool = False
    confirmed_players: List[str] = Field(default_factory=list)
    join_requests: List[JoinRequest] = Field(default_factory=list)
    status: GameStatus = GameStatus.open
    revision: int = Field(0, description="Incremented on every saved change")
    created_at: datetime
    updated_at: datetime

    @property
    def pending_user_ids(self) -> list[str]:
        return [r.user_id for r in self.join_requests]


class GameCreate(BaseModel):
    turf_id: str
    date: str = Field(..., pattern=_DATE_PATTERN)
    start_time: str = Field(..., pattern=_TIME_PATTERN)
    end_time: str = Field(..., pattern=_TIME_PATTERN)
    sport: str
    format: str = Field(..., description='e.g. "5v5", "7v7"')
    skill_level: SkillLevel = SkillLevel.all
    max_players: int = Field(..., ge=2, le=50)
    cost_per_person: float = Field(..., ge=0)
    description: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=500)
    is_private: bool = False


class GameUpdate(BaseModel):
    date: Optional[str] = Field(None, pattern=_DATE_PATTERN)
    start_time: Optional[str] = Field(None, pattern=_TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=_TIME_PATTERN)
    sport: Optional[str] = None
    format: Optional[str] = None
    skill_level: Optional[SkillLevel] = None
    max_players: Optional[int] = Field(None, ge=2, le=50)
    cost_per_person: Optional[float] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=500)
    is_private: Optional[bool] = None
    status: Optional[GameStatus] = None


class JoinRequestDecision(BaseModel):
    approve: StrictBool


class GameActionResponse(BaseModel):
    message: str
    game: Game


# ── Misc ──────────────────────────────────────────────────────────────────


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Health status")
    version: str
    timestamp: datetime = Field(..., description="Current timestamp")
