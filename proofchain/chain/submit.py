# proofchain/chain/submit.py
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict

from proofchain.api.session import Session
from proofchain.common.errors import TransportError
from proofchain.common.protocol import PostAuthResponse, PostSigResponse
from proofchain.crypto.sign import encode_signature

logger = logging.getLogger(__name__)


class Proof(BaseModel):
    model_config = ConfigDict(frozen=True)

    claim_text: str
    signature_id: str
    proof_id: str
    payload_hash: str


def submit_auth_signature(
    session: Session,
    signature: bytes,
    timeout: Optional[float] = None,
) -> bytes:
    """Post a signed auth assertion; returns the decoded auth token."""
    resp = session.post(
        "sig/post_auth",
        {"email_or_username": session.username, "sig": encode_signature(signature)},
        PostAuthResponse,
        timeout=timeout,
    )
    try:
        return bytes.fromhex(resp.auth_token)
    except ValueError as e:
        raise TransportError("sig/post_auth: auth token is not hex") from e


def submit_service_binding(
    session: Session,
    signature: bytes,
    external_username: str,
    service_name: str,
    timeout: Optional[float] = None,
) -> Proof:
    """
    Post a signed service binding. Not retried: on a chain conflict or an
    unknown outcome, re-read the chain tip and rebuild from scratch.
    """
    resp = session.post(
        "sig/post",
        {
            "sig": encode_signature(signature),
            "remote_username": external_username,
            "type": f"web_service_binding.{service_name}",
        },
        PostSigResponse,
        timeout=timeout,
    )
    proof = Proof(
        claim_text=resp.proof_text,
        signature_id=resp.sig_id,
        proof_id=resp.proof_id,
        payload_hash=resp.payload_hash,
    )
    logger.info("%s proof %s posted for %s", service_name, proof.proof_id, session.username)
    return proof
