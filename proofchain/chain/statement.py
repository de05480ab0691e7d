# proofchain/chain/statement.py
"""
Signable statements.

The signature is computed over the exact bytes produced when a statement is
built, so builders return a FrozenStatement carrying those bytes. Signers
must sign `frozen.payload`, never a fresh serialisation of the model.

Wire shape (keys are emitted sorted, compact separators):

    auth:
      {"body": {"key": {...}, "string": "", "type": "auth", "version": 1},
       "ctime": ..., "expires_in": 86400, "tag": "signature"}

    web_service_binding:
      {"body": {"client": {...}, "key": {...},
                "service": {"name": ..., "username": ...},
                "type": "web_service_binding", "version": 1},
       "ctime": ..., "expire_in": 157680000,
       "prev": ..., "seqno": ..., "tag": "signature"}
"""
import json
import logging
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from proofchain.api.session import Session
from proofchain.chain.sequencer import ChainPosition, next_position
from proofchain.common.errors import NoPublicKeyError
from proofchain.common.utils import now_s, sha256_hex

logger = logging.getLogger(__name__)

STATEMENT_VERSION = 1


class Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class KeyDescriptor(Frozen):
    fingerprint: str
    host: str
    key_id: str
    uid: str
    username: str


class ClientInfo(Frozen):
    name: str
    version: str


class ServiceRef(Frozen):
    name: str
    username: str


class AuthAssertion(Frozen):
    type: Literal["auth"] = "auth"
    key: KeyDescriptor
    ctime: int
    expires_in: int

    def to_wire(self) -> Dict[str, Any]:
        return {
            "body": {
                "key": self.key.model_dump(),
                "string": "",
                "type": self.type,
                "version": STATEMENT_VERSION,
            },
            "ctime": self.ctime,
            "expires_in": self.expires_in,
            "tag": "signature",
        }


class ServiceBindingAssertion(Frozen):
    type: Literal["web_service_binding"] = "web_service_binding"
    key: KeyDescriptor
    client: ClientInfo
    service: ServiceRef
    ctime: int
    expire_in: int
    position: ChainPosition

    def to_wire(self) -> Dict[str, Any]:
        return {
            "body": {
                "client": self.client.model_dump(),
                "key": self.key.model_dump(),
                "service": self.service.model_dump(),
                "type": self.type,
                "version": STATEMENT_VERSION,
            },
            "ctime": self.ctime,
            "expire_in": self.expire_in,
            "prev": self.position.prev,
            "seqno": self.position.seqno,
            "tag": "signature",
        }


Statement = Annotated[
    Union[AuthAssertion, ServiceBindingAssertion],
    Field(discriminator="type"),
]


def serialize(statement: Union[AuthAssertion, ServiceBindingAssertion]) -> bytes:
    """Stable encoding: sorted keys, no whitespace, UTF-8."""
    return json.dumps(
        statement.to_wire(),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


class FrozenStatement(Frozen):
    statement: Statement
    payload: bytes

    @property
    def fingerprint(self) -> str:
        return self.statement.key.fingerprint

    @property
    def position(self) -> Optional[ChainPosition]:
        return getattr(self.statement, "position", None)

    @property
    def digest(self) -> str:
        """Link digest the next statement in the chain will carry as prev."""
        return sha256_hex(self.payload)


def freeze(statement: Union[AuthAssertion, ServiceBindingAssertion]) -> FrozenStatement:
    return FrozenStatement(statement=statement, payload=serialize(statement))


def _key_descriptor(session: Session) -> KeyDescriptor:
    key = session.principal.primary_key()
    if key is None or not key.key_fingerprint or not key.kid:
        raise NoPublicKeyError(session.username)
    return KeyDescriptor(
        fingerprint=key.key_fingerprint.lower(),
        host=session.transport.config.host,
        key_id=key.kid,
        uid=session.user_id,
        username=session.username,
    )


def build_auth_assertion(session: Session, ctime: Optional[int] = None) -> FrozenStatement:
    """Short-lived login assertion; consumes no chain position."""
    key = _key_descriptor(session)
    statement = AuthAssertion(
        key=key,
        ctime=now_s() if ctime is None else ctime,
        expires_in=session.transport.config.auth_expires_in,
    )
    return freeze(statement)


def build_service_binding_assertion(
    session: Session,
    service_name: str,
    external_username: str,
    ctime: Optional[int] = None,
    timeout: Optional[float] = None,
) -> FrozenStatement:
    """
    Chain-anchored claim that `external_username` on `service_name` belongs
    to the principal. Fetches a fresh chain position; errors from that call
    propagate unchanged.
    """
    if not service_name or not external_username:
        raise ValueError("service name and external username are required")
    key = _key_descriptor(session)
    position = next_position(session, timeout=timeout)
    config = session.transport.config
    statement = ServiceBindingAssertion(
        key=key,
        client=ClientInfo(name=config.client_name, version=config.client_version),
        service=ServiceRef(name=service_name, username=external_username),
        ctime=now_s() if ctime is None else ctime,
        expire_in=config.binding_expire_in,
        position=position,
    )
    logger.info(
        "built %s binding for %s at seqno %d",
        service_name,
        session.username,
        position.seqno,
    )
    return freeze(statement)
