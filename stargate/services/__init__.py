"""Service layer exports."""

from .accounts import GitHubAccountService
from .cache import StarVerificationCache
from .sessions import SessionService
from .star_gate import ErrorCode, StarGateError, StarGateService
from .verification import AccessDecision, GitHubStarVerifier, VerificationResult

__all__ = [
    "AccessDecision",
    "ErrorCode",
    "GitHubAccountService",
    "GitHubStarVerifier",
    "SessionService",
    "StarGateError",
    "StarGateService",
    "StarVerificationCache",
    "VerificationResult",
]
