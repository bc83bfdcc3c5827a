"""
vswitch error taxonomy

Every failure is scoped to a single switch; none of these are allowed to
escape one switch's pipeline into another.
"""
from typing import Optional


class VSwitchError(Exception):
    """Base exception for the virtual switch daemon"""

    pass


class ConfigurationError(VSwitchError):
    """Raised when a switch configuration is unusable"""

    def __init__(self, message: str, switch_name: Optional[str] = None):
        super().__init__(message)
        self.switch_name = switch_name


class PersistenceError(VSwitchError):
    """Raised when a persisted timer or state record cannot be read or written"""

    pass


class ExternalProcessError(VSwitchError):
    """Raised when a log follower cannot be started or exits abnormally"""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class BridgeIntegrationError(VSwitchError):
    """Raised when the command/notification bridge cannot be attached"""

    pass


class SwitchNotFoundError(VSwitchError):
    """Raised when a command addresses a switch that is not configured"""

    pass
