"""
Error types shared by the Warrior slot monitor components
"""

from enum import Enum
from typing import Optional


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid"""


class CheckErrorKind(Enum):
    NETWORK = 'Network'
    UNEXPECTED_RESPONSE = 'UnexpectedResponse'
    RATE_LIMITED = 'RateLimited'


class CheckError(Exception):
    """A single availability check failed"""

    kind = CheckErrorKind.UNEXPECTED_RESPONSE

    def __init__(self, program_id: str, message: str):
        super().__init__(message)
        self.program_id = program_id
        self.message = message

    def __str__(self):
        return f"{self.kind.value} for program {self.program_id}: {self.message}"


class NetworkError(CheckError):
    kind = CheckErrorKind.NETWORK


class UnexpectedResponseError(CheckError):
    kind = CheckErrorKind.UNEXPECTED_RESPONSE


class RateLimitedError(CheckError):
    kind = CheckErrorKind.RATE_LIMITED

    def __init__(self, program_id: str, message: str, retry_after: Optional[float] = None):
        super().__init__(program_id, message)
        self.retry_after = retry_after


class NotifyError(Exception):
    """Notification could not be delivered (DeliveryFailed)"""

    kind = 'DeliveryFailed'

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
