# proofchain/api/session.py
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel

from proofchain.api.salt import SaltMaterial
from proofchain.api.transport import Transport
from proofchain.common.protocol import LoginResponse, User
from proofchain.common.utils import b64encode, short
from proofchain.crypto.kdf import ByteLike, login_hmac

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


@dataclass
class Session:
    """
    An authenticated principal. The CSRF token rotates on every server
    call, so all calls made through one Session are serialised by its lock.
    Nothing may hold the lock while waiting on a signer.
    """

    transport: Transport = field(repr=False)
    session_id: str = field(repr=False)
    guest_id: str
    user_id: str
    csrf_token: str = field(repr=False)
    principal: User = field(repr=False)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def username(self) -> str:
        return self.principal.basics.username

    def rotate(self, token: Optional[str]) -> None:
        if token:
            self.csrf_token = token

    def get(
        self,
        command: str,
        params: Dict[str, Any],
        model: Type[M],
        timeout: Optional[float] = None,
    ) -> M:
        with self.lock:
            params = dict(params, session=self.session_id)
            resp = self.transport.get(command, params, model, timeout=timeout)
            self.rotate(getattr(resp, "csrf_token", None))
            return resp

    def post(
        self,
        command: str,
        form: Dict[str, Any],
        model: Type[M],
        timeout: Optional[float] = None,
    ) -> M:
        with self.lock:
            form = dict(form, session=self.session_id, csrf_token=self.csrf_token)
            resp = self.transport.post(command, form, model, timeout=timeout)
            self.rotate(getattr(resp, "csrf_token", None))
            return resp


def login(
    transport: Transport,
    username: str,
    password: ByteLike,
    material: SaltMaterial,
    timeout: Optional[float] = None,
) -> Session:
    """
    Second round of the login handshake. `material` is destroyed when this
    returns, whatever the outcome; the caller scrubs `password`.
    """
    try:
        pwh_hmac = login_hmac(password, material.salt, material.login_session)
        form = {
            "email_or_username": username,
            "hmac_pwh": pwh_hmac.hex(),
            "login_session": b64encode(bytes(material.login_session)),
            "csrf_token": material.csrf_token,
        }
        resp = transport.post("login", form, LoginResponse, timeout=timeout)
    finally:
        material.destroy()

    session = Session(
        transport=transport,
        session_id=resp.session,
        guest_id=resp.guest_id,
        user_id=resp.uid,
        csrf_token=resp.csrf_token,
        principal=resp.me,
    )
    logger.info("logged in as %s (uid %s)", session.username or username, short(resp.uid))
    return session
