"""
Declarations of the record collections the star gate persists.

Field names are the storage (camelCase) names. Date fields are stored as
ISO-8601 strings and revived into aware datetimes by the storage adapter.
"""

from __future__ import annotations

from typing import Dict, FrozenSet

STAR_VERIFICATION = "starVerification"
SESSION = "session"
ACCOUNT = "account"


class CollectionSchema:
    """Field layout of one collection."""

    def __init__(self, name: str, fields: Dict[str, str]) -> None:
        self.name = name
        self.fields = fields

    @property
    def date_fields(self) -> FrozenSet[str]:
        return frozenset(
            field for field, kind in self.fields.items() if kind == "date"
        )


STAR_GATE_SCHEMA: Dict[str, CollectionSchema] = {
    STAR_VERIFICATION: CollectionSchema(
        STAR_VERIFICATION,
        {
            "id": "string",
            "userId": "string",
            "repository": "string",
            "hasStarred": "boolean",
            "lastCheckedAt": "date",
            "expiresAt": "date",
            "createdAt": "date",
            "accessGrantedAt": "date",
            "accessRevokedAt": "date",
            "gracePeriodEndsAt": "date",
            "gracePeriodStartedAt": "date",
        },
    ),
    SESSION: CollectionSchema(
        SESSION,
        {
            "id": "string",
            "userId": "string",
            "token": "string",
            "expiresAt": "date",
            "createdAt": "date",
            "hasStarAccess": "boolean",
            "starVerifiedAt": "date",
            "gracePeriodActive": "boolean",
            "gracePeriodEndsAt": "date",
        },
    ),
    ACCOUNT: CollectionSchema(
        ACCOUNT,
        {
            "id": "string",
            "userId": "string",
            "providerId": "string",
            "accountId": "string",
            "accessTokenEncrypted": "string",
            "createdAt": "date",
            "updatedAt": "date",
        },
    ),
}


def get_collection(name: str) -> CollectionSchema:
    """Return the schema for ``name`` or raise ``KeyError`` for unknown collections."""
    try:
        return STAR_GATE_SCHEMA[name]
    except KeyError:
        raise KeyError(f"Unknown collection: {name}") from None


__all__ = [
    "ACCOUNT",
    "CollectionSchema",
    "SESSION",
    "STAR_GATE_SCHEMA",
    "STAR_VERIFICATION",
    "get_collection",
]
