"""
Who may move an order from which status to which.

The whole authorization matrix lives in ALLOWED_TRANSITIONS; handlers and
services ask this module instead of comparing role strings themselves.
"""
from enum import Enum
from typing import Dict, FrozenSet, Tuple

from pydantic import BaseModel

from tuckshop.models.order import OrderStatus


class Role(str, Enum):
    CUSTOMER = "customer"
    EMPLOYEE = "employee"
    OWNER = "owner"

    @property
    def is_staff(self) -> bool:
        return self in (Role.EMPLOYEE, Role.OWNER)


class Actor(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"


class Caller(BaseModel):
    """Identity resolved by the upstream access verifier."""
    uid: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role.is_staff


def actor_for(role: Role) -> Actor:
    return Actor.STAFF if role.is_staff else Actor.CUSTOMER


ALLOWED_TRANSITIONS: Dict[Tuple[Actor, OrderStatus], FrozenSet[OrderStatus]] = {
    (Actor.CUSTOMER, OrderStatus.PENDING): frozenset({OrderStatus.CANCELLED}),
    (Actor.STAFF, OrderStatus.PENDING): frozenset({OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED}),
    (Actor.STAFF, OrderStatus.IN_PROGRESS): frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    (Actor.STAFF, OrderStatus.CANCELLED): frozenset({OrderStatus.CANCELLED_ACKNOWLEDGED}),
}

CANCELLED_STATES = frozenset({OrderStatus.CANCELLED, OrderStatus.CANCELLED_ACKNOWLEDGED})
STOCK_HOLDING_STATES = frozenset({OrderStatus.PENDING, OrderStatus.IN_PROGRESS})


def allowed_next_statuses(role: Role, current: OrderStatus) -> FrozenSet[OrderStatus]:
    return ALLOWED_TRANSITIONS.get((actor_for(role), current), frozenset())


def can_transition(role: Role, current: OrderStatus, new: OrderStatus) -> bool:
    return new in allowed_next_statuses(role, current)


def releases_stock(current: OrderStatus, new: OrderStatus) -> bool:
    """True when the move must put the order's items back on the shelf."""
    return new == OrderStatus.CANCELLED and current in STOCK_HOLDING_STATES
