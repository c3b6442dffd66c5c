from .sessions import BindingSessionManager
from .state_machine import BindingStateMachine, ScanOutcome

__all__ = ["BindingSessionManager", "BindingStateMachine", "ScanOutcome"]
