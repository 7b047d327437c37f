"""Public schema exports."""

from .star_gate import (
    ErrorDetail,
    RefreshResponse,
    SignInRequest,
    SignInResponse,
    StarStatusResponse,
)

__all__ = [
    "ErrorDetail",
    "RefreshResponse",
    "SignInRequest",
    "SignInResponse",
    "StarStatusResponse",
]
