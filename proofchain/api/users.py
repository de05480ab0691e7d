# proofchain/api/users.py
import logging
from typing import Optional

from proofchain.api.session import Session
from proofchain.api.transport import Transport
from proofchain.common.errors import NoPublicKeyError
from proofchain.common.protocol import (
    PUBLIC_KEY,
    Key,
    KeyAddResponse,
    KeyRevokeResponse,
    LookupResponse,
    User,
)
from proofchain.common.utils import now_s, short

logger = logging.getLogger(__name__)


def lookup_user(
    transport: Transport,
    username: str,
    timeout: Optional[float] = None,
) -> User:
    """Public profile lookup. Needs no session; safe to call concurrently."""
    resp = transport.get("user/lookup", {"username": username}, LookupResponse, timeout=timeout)
    return resp.them


def fetch_public_key(
    transport: Transport,
    username: str,
    timeout: Optional[float] = None,
) -> str:
    """Armoured bundle of the user's primary public key."""
    user = lookup_user(transport, username, timeout=timeout)
    key = user.primary_key()
    if key is None or not key.bundle:
        raise NoPublicKeyError(username)
    return key.bundle


def add_key(
    session: Session,
    armoured: str,
    fingerprint: str,
    timeout: Optional[float] = None,
) -> str:
    """Upload a public key as the principal's primary key; returns its kid."""
    if not fingerprint:
        raise ValueError("add_key: fingerprint of the signing key is required")
    with session.lock:
        resp = session.post(
            "key/add",
            {"public_key": armoured, "is_primary": "true"},
            KeyAddResponse,
            timeout=timeout,
        )
        ts = now_s()
        session.principal.public_keys["primary"] = Key(
            kid=resp.kid,
            key_fingerprint=fingerprint.lower(),
            key_type=PUBLIC_KEY,
            bundle=armoured,
            ctime=ts,
            mtime=ts,
        )
    logger.info("added primary key %s for %s", short(resp.kid, 16), session.username)
    return resp.kid


def revoke_key(
    session: Session,
    kid: str,
    timeout: Optional[float] = None,
) -> None:
    with session.lock:
        session.post(
            "key/revoke",
            {"kid": kid, "revocation_type": "0"},
            KeyRevokeResponse,
            timeout=timeout,
        )
        keys = session.principal.public_keys
        for role in [role for role, key in keys.items() if key.kid == kid]:
            del keys[role]
    logger.info("revoked key %s for %s", short(kid, 16), session.username)
