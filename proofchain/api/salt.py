# proofchain/api/salt.py
import binascii
import logging
from typing import Optional

from proofchain.api.transport import Transport
from proofchain.common.errors import SaltConsumedError, TransportError
from proofchain.common.protocol import SaltResponse
from proofchain.common.utils import b64decode, zero

logger = logging.getLogger(__name__)


class SaltMaterial:
    """
    Single-use login material from getsalt. Byte fields are bytearrays so
    destroy() can zero them; after that every accessor raises.

    Use as a context manager or hand it to login(), which destroys it.
    """

    def __init__(
        self,
        guest_id: bytearray,
        salt: bytearray,
        login_session: bytearray,
        pwh_version: int,
        csrf_token: str,
    ):
        self._guest_id = guest_id
        self._salt = salt
        self._login_session = login_session
        self.pwh_version = pwh_version
        self._csrf_token = csrf_token
        self._destroyed = False

    def __enter__(self) -> "SaltMaterial":
        return self

    def __exit__(self, *exc) -> None:
        self.destroy()

    def __repr__(self) -> str:
        state = "destroyed" if self._destroyed else "live"
        return f"<SaltMaterial pwh_version={self.pwh_version} {state}>"

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def _check(self) -> None:
        if self._destroyed:
            raise SaltConsumedError("salt material has already been used")

    @property
    def guest_id(self) -> bytearray:
        self._check()
        return self._guest_id

    @property
    def salt(self) -> bytearray:
        self._check()
        return self._salt

    @property
    def login_session(self) -> bytearray:
        self._check()
        return self._login_session

    @property
    def csrf_token(self) -> str:
        self._check()
        return self._csrf_token

    def buffers(self):
        """The raw secret-bearing buffers, destroyed or not."""
        return self._guest_id, self._salt, self._login_session

    def destroy(self) -> None:
        for buf in self.buffers():
            zero(buf)
        self._csrf_token = ""
        self._destroyed = True


def _decode(resp: SaltResponse) -> SaltMaterial:
    guest_id = bytearray()
    salt = bytearray()
    login_session = bytearray()
    try:
        guest_id.extend(bytes.fromhex(resp.guest_id))
        salt.extend(bytes.fromhex(resp.salt))
        login_session.extend(b64decode(resp.login_session))
    except (ValueError, binascii.Error) as e:
        for buf in (guest_id, salt, login_session):
            zero(buf)
        raise TransportError("getsalt: undecodable salt material") from e
    return SaltMaterial(guest_id, salt, login_session, resp.pwh_version, resp.csrf_token)


def fetch_salt(
    transport: Transport,
    username: str,
    timeout: Optional[float] = None,
) -> SaltMaterial:
    """
    GET getsalt for a username or email. Read-only; the returned material
    must be passed to exactly one login().
    """
    resp = transport.get(
        "getsalt",
        {"email_or_username": username},
        SaltResponse,
        timeout=timeout,
    )
    material = _decode(resp)
    logger.info("salt fetched for %s (pwh_version=%d)", username, material.pwh_version)
    return material
