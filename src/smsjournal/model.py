"""Records the interpreter reads and writes through the journal store."""

from __future__ import annotations

from dataclasses import dataclass

EXPERIENCE_ASSOCIATION = "experience"


@dataclass(frozen=True, slots=True)
class User:
    id: int
    username: str
    phone: str | None


@dataclass(frozen=True, slots=True)
class Session:
    """An experience; `date` is its creation time, `ttime` the T-zero event."""

    id: int
    title: str
    date: int
    notes: str | None
    ttime: int | None
    owner: int


@dataclass(frozen=True, slots=True)
class Event:
    """A consumption inside a session."""

    id: int
    date: int
    count: float
    experience_id: int
    drug_id: int
    method_id: int
    location: str | None
    owner: int


@dataclass(frozen=True, slots=True)
class EventListing:
    id: int
    count: float
    unit: str | None
    name: str | None


@dataclass(frozen=True, slots=True)
class Media:
    id: int
    filename: str
    title: str
    date: int
    association_type: str
    association: int
    owner: int
    explicit: bool = False
    favorite: bool = False


@dataclass(frozen=True, slots=True)
class NewEvent:
    date: int
    experience_id: int
    count: float
    drug_id: int
    method_id: int
    location: str | None
    owner: int


@dataclass(frozen=True, slots=True)
class NewMedia:
    filename: str
    title: str
    date: int
    association: int
    owner: int
    association_type: str = EXPERIENCE_ASSOCIATION
    explicit: bool = False
    favorite: bool = False


def format_count(count: float) -> str:
    if float(count).is_integer():
        return str(int(count))
    return str(count)
