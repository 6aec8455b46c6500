from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Link:
    id: int
    url: str
    description: str
    posted_by: int
    created_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class User:
    id: int
    name: str
    email: str
    password: str
    created_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class Vote:
    id: int
    user_id: int
    link_id: int
    created_at: datetime = field(default_factory=datetime.now)
