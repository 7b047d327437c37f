"""Linked GitHub accounts with access tokens encrypted at rest."""

from __future__ import annotations

import base64
import hashlib
import logging
import uuid
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from stargate.clients.store import RecordStore, Where
from stargate.models.schema import ACCOUNT
from stargate.models.verification import LinkedAccount, utcnow

GITHUB_PROVIDER = "github"

logger = logging.getLogger(__name__)


class GitHubAccountService:
    """Store and look up the GitHub account a user signed in with."""

    def __init__(self, store: RecordStore, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))
        self._store = store

    def _encrypt(self, token: str) -> str:
        return self._fernet.encrypt(token.encode("utf-8")).decode("utf-8")

    def _decrypt(self, ciphertext: str) -> str:
        return self._fernet.decrypt(ciphertext.encode("utf-8")).decode("utf-8")

    async def get_account(self, user_id: str) -> Optional[LinkedAccount]:
        document = await self._store.find_one(
            ACCOUNT,
            [Where("userId", user_id), Where("providerId", GITHUB_PROVIDER)],
        )
        if not document:
            return None
        return LinkedAccount.from_document(document)

    async def link(
        self, *, user_id: str, account_id: str, access_token: str | None
    ) -> LinkedAccount:
        """Create or refresh the user's GitHub account link."""
        now = utcnow()
        encrypted = self._encrypt(access_token) if access_token else None
        existing = await self.get_account(user_id)
        if existing is not None:
            document = await self._store.update(
                ACCOUNT,
                existing.id,
                {
                    "accountId": account_id,
                    "accessTokenEncrypted": encrypted,
                    "updatedAt": now,
                },
            )
            if document is not None:
                return LinkedAccount.from_document(document)

        account = LinkedAccount(
            id=str(uuid.uuid4()),
            user_id=user_id,
            provider_id=GITHUB_PROVIDER,
            account_id=account_id,
            access_token_encrypted=encrypted,
            created_at=now,
            updated_at=now,
        )
        document = await self._store.create(ACCOUNT, account.to_document())
        return LinkedAccount.from_document(document)

    def access_token_for(self, account: LinkedAccount) -> Optional[str]:
        """Decrypt the stored token; an unreadable token counts as missing."""
        if not account.access_token_encrypted:
            return None
        try:
            return self._decrypt(account.access_token_encrypted)
        except InvalidToken:
            logger.warning("Stored GitHub token for user %s could not be decrypted", account.user_id)
            return None

    async def get_access_token(self, user_id: str) -> Optional[str]:
        account = await self.get_account(user_id)
        if account is None:
            return None
        return self.access_token_for(account)


__all__ = ["GITHUB_PROVIDER", "GitHubAccountService"]
