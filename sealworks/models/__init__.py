from .enums import TokenStatus, SheetStatus, BindingSessionStatus, ActorRole
from .partner import Partner, Product
from .token import Token
from .seal_sheet import SealSheet
from .binding import Binding
from .binding_session import BindingSession
from .redirect_rule import RedirectRule
from .audit_entry import AuditEntry

__all__ = [
    "TokenStatus",
    "SheetStatus",
    "BindingSessionStatus",
    "ActorRole",
    "Partner",
    "Product",
    "Token",
    "SealSheet",
    "Binding",
    "BindingSession",
    "RedirectRule",
    "AuditEntry",
]
