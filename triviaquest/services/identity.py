"""Resolve bearer tokens into users.

Two providers exist. The Supabase one trusts Supabase Auth to have issued the
token. The local one is an email-only sign-in that keeps tokens
in memory.
"""

from __future__ import annotations

import logging
import secrets
import threading
import uuid
from typing import Dict, Optional, Protocol, Tuple

from supabase import Client

from ..domain.errors import SignInUnsupported
from ..domain.model import Identity

logger = logging.getLogger(__name__)

_USER_NAMESPACE = uuid.UUID("6f1d3c0e-4a7b-5d2e-9c8f-1b2a3c4d5e6f")


class IdentityProvider(Protocol):
    def resolve(self, token: str) -> Optional[Identity]: ...

    def sign_in(self, email: str) -> Tuple[str, Identity]: ...

    def sign_out(self, token: str) -> None: ...


class SupabaseIdentityProvider:
    def __init__(self, client: Client) -> None:
        self.client = client

    def resolve(self, token: str) -> Optional[Identity]:
        try:
            res = self.client.auth.get_user(token)
        except Exception as e:  # gotrue raises several unrelated error types
            logger.info("Rejected bearer token: %s", e)
            return None
        user = getattr(res, "user", None)
        if user is None:
            return None
        return Identity(user_id=str(user.id), email=getattr(user, "email", None))

    def sign_in(self, email: str) -> Tuple[str, Identity]:
        raise SignInUnsupported("Sign in through Supabase Auth and send its access token")

    def sign_out(self, token: str) -> None:
        # tokens are revoked client-side with supabase.auth.signOut()
        return None


class LocalIdentityProvider:
    def __init__(self) -> None:
        self._tokens: Dict[str, Identity] = {}
        self._lock = threading.Lock()

    @staticmethod
    def user_id_for(email: str) -> str:
        return str(uuid.uuid5(_USER_NAMESPACE, email.strip().lower()))

    def resolve(self, token: str) -> Optional[Identity]:
        with self._lock:
            return self._tokens.get(token)

    def sign_in(self, email: str) -> Tuple[str, Identity]:
        """Sign in or sign up; the same email always maps to the same user."""
        normalized = email.strip().lower()
        identity = Identity(user_id=self.user_id_for(normalized), email=normalized)
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._tokens[token] = identity
        logger.info("Signed in user %s", identity.user_id[:8])
        return token, identity

    def sign_out(self, token: str) -> None:
        with self._lock:
            self._tokens.pop(token, None)
