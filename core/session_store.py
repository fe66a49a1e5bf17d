"""
Core Module - Session Store.

============================================================
RESPONSIBILITY
============================================================
Process-local session state with expiry.

- TTLSessionStore: keyed store, each entry carries its own expiry
- ImpersonationService: operations-director role impersonation
- ChallengeStore: single-use WebAuthn registration/login challenges

Stores are constructed by the caller and passed to whatever
needs them. Nothing here is a module-level singleton.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Generic, List, Optional, TypeVar
import logging
import secrets
import threading

from .clock import ClockProtocol, SystemClock
from .exceptions import (
    ImpersonationDeniedError,
    SessionExpiredError,
    SessionNotFoundError,
)


logger = logging.getLogger(__name__)

V = TypeVar("V")


# ============================================================
# TTL STORE
# ============================================================

@dataclass(frozen=True)
class SessionEntry(Generic[V]):
    """A stored value and its lifetime."""

    key: str
    value: V
    created_at: datetime
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class TTLSessionStore(Generic[V]):
    """
    Keyed cache with per-entry time-to-live.

    Expired entries are dropped lazily on access and by purge_expired().
    """

    def __init__(
        self,
        default_ttl_seconds: Optional[float] = 3600.0,
        clock: Optional[ClockProtocol] = None,
    ):
        self._default_ttl = default_ttl_seconds
        self._clock = clock or SystemClock()
        self._entries: Dict[str, SessionEntry[V]] = {}
        self._lock = threading.Lock()

    def now(self) -> datetime:
        return self._clock.now()

    def set(self, key: str, value: V, ttl_seconds: Optional[float] = None) -> SessionEntry[V]:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        now = self._clock.now()
        entry = SessionEntry(
            key=key,
            value=value,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl) if ttl is not None else None,
        )
        with self._lock:
            self._entries[key] = entry
        return entry

    def get(self, key: str) -> Optional[V]:
        """Return the live value for key, or None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock.now()):
                del self._entries[key]
                return None
            return entry.value

    def require(self, key: str) -> V:
        """
        Return the live value for key.

        Raises:
            SessionNotFoundError: key was never stored or was removed
            SessionExpiredError: key was stored but its TTL elapsed
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                raise SessionNotFoundError(key)
            if entry.is_expired(self._clock.now()):
                del self._entries[key]
                raise SessionExpiredError(key, entry.expires_at)
            return entry.value

    def pop(self, key: str) -> Optional[V]:
        """Remove key and return its live value, if any."""
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None or entry.is_expired(self._clock.now()):
            return None
        return entry.value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        now = self._clock.now()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired session entries")
        return len(expired)

    def keys(self) -> List[str]:
        now = self._clock.now()
        with self._lock:
            return [k for k, e in self._entries.items() if not e.is_expired(now)]

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self.keys())


# ============================================================
# ROLE IMPERSONATION
# ============================================================

OPERATIONS_DIRECTOR_ROLE = "operations_director"

# Roles an operations director may test, per company type
IMPERSONATION_ROLES: Dict[str, List[str]] = {
    "service": [
        "administrator",
        "project_manager",
        "manager",
        "field_engineer",
        "field_agent",
    ],
    "client": [
        "client_company_admin",
        "project_manager",
        "manager",
    ],
}


@dataclass(frozen=True)
class ImpersonationContext:
    """Active impersonation for one operations director."""

    original_user_id: str
    impersonated_user_id: str
    company_type: str
    role: str
    start_time: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalUserId": self.original_user_id,
            "impersonatedUserId": self.impersonated_user_id,
            "companyType": self.company_type,
            "role": self.role,
            "startTime": self.start_time.isoformat(),
        }


class ImpersonationService:
    """
    Start, look up and stop role impersonation sessions.

    Sessions are keyed by the original user's id and expire after
    the store's TTL.
    """

    def __init__(self, store: TTLSessionStore[ImpersonationContext]):
        self._store = store

    def start_impersonation(
        self,
        original_user_id: str,
        original_user_roles: List[str],
        role: str,
        company_type: str,
        impersonated_user_id: str,
    ) -> ImpersonationContext:
        if OPERATIONS_DIRECTOR_ROLE not in (original_user_roles or []):
            raise ImpersonationDeniedError(
                original_user_id,
                "Only Operations Directors can use role impersonation",
            )

        allowed = IMPERSONATION_ROLES.get(company_type)
        if allowed is None:
            raise ImpersonationDeniedError(
                original_user_id,
                f"Unknown company type: {company_type}",
            )
        if role not in allowed:
            raise ImpersonationDeniedError(
                original_user_id,
                f"No impersonation target for role {role} in {company_type} company",
            )

        context = ImpersonationContext(
            original_user_id=original_user_id,
            impersonated_user_id=impersonated_user_id,
            company_type=company_type,
            role=role,
            start_time=self._store.now(),
        )
        self._store.set(original_user_id, context)

        logger.info(
            f"Impersonation started: {original_user_id} as {role} ({company_type})"
        )
        return context

    def get_impersonation(self, original_user_id: str) -> Optional[ImpersonationContext]:
        return self._store.get(original_user_id)

    def is_impersonating(self, original_user_id: str) -> bool:
        return original_user_id in self._store

    def effective_user_id(self, user_id: str) -> str:
        """Id requests should act as: the impersonated user, if any."""
        context = self._store.get(user_id)
        return context.impersonated_user_id if context else user_id

    def stop_impersonation(self, original_user_id: str) -> bool:
        stopped = self._store.delete(original_user_id)
        if stopped:
            logger.info(f"Impersonation stopped: {original_user_id}")
        return stopped


# ============================================================
# WEBAUTHN CHALLENGES
# ============================================================

class ChallengeStore:
    """
    Single-use challenges for WebAuthn ceremonies.

    A challenge verifies at most once and only before it expires.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Optional[ClockProtocol] = None,
        challenge_bytes: int = 32,
    ):
        self._store: TTLSessionStore[str] = TTLSessionStore(
            default_ttl_seconds=ttl_seconds,
            clock=clock,
        )
        self._challenge_bytes = challenge_bytes

    def issue(self, user_id: str) -> str:
        challenge = secrets.token_urlsafe(self._challenge_bytes)
        self._store.set(user_id, challenge)
        return challenge

    def consume(self, user_id: str, challenge: str) -> bool:
        expected = self._store.pop(user_id)
        if expected is None:
            return False
        return secrets.compare_digest(expected, challenge)

    def purge_expired(self) -> int:
        return self._store.purge_expired()
