from enum import Enum


class TokenStatus(str, Enum):
    UNBOUND = "UNBOUND"
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"


class SheetStatus(str, Enum):
    UNASSIGNED = "UNASSIGNED"
    ASSIGNED = "ASSIGNED"
    REVOKED = "REVOKED"


class BindingSessionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    TERMINATED = "TERMINATED"
    EXPIRED = "EXPIRED"


class ActorRole(str, Enum):
    ADMIN = "ADMIN"
    WAREHOUSE = "WAREHOUSE"
    PARTNER = "PARTNER"
