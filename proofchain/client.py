"""Workflow facade: login, then build -> sign -> submit per statement."""

import getpass
import logging
from typing import Optional, Union

from proofchain.api.salt import fetch_salt
from proofchain.api.session import Session, login
from proofchain.api.transport import Transport
from proofchain.api import users
from proofchain.chain.sequencer import ChainPosition, next_position
from proofchain.chain.statement import build_auth_assertion, build_service_binding_assertion
from proofchain.chain.submit import Proof, submit_auth_signature, submit_service_binding
from proofchain.chain.transcript import ChainTranscript
from proofchain.common.config import ClientConfig
from proofchain.common.errors import NoPublicKeyError, ProofchainError, RemoteError
from proofchain.common.protocol import User
from proofchain.common.utils import short, zero
from proofchain.crypto.sign import KeyFileSigner, Signer

logger = logging.getLogger(__name__)


class ProofClient:
    """
    One authenticated workflow against the identity service.

    Steps run strictly in sequence. Session calls are serialised by the
    session lock; signing happens between calls with no lock held, so a
    slow signer (passphrase prompt) blocks only this workflow.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[Transport] = None,
    ):
        self.transport = transport or Transport(config)
        self.config = self.transport.config
        self.transcript = ChainTranscript()
        self._session: Optional[Session] = None

    def __enter__(self) -> "ProofClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self.transport.close()

    @property
    def session(self) -> Session:
        if self._session is None:
            raise ProofchainError("not logged in")
        return self._session

    # ============ Login ============

    def login(self, username: str, password: Union[bytearray, bytes]) -> Session:
        """
        getsalt + login. A bytearray password is zeroed before returning,
        on success or failure.
        """
        try:
            material = fetch_salt(self.transport, username)
            self._session = login(self.transport, username, password, material)
        finally:
            if isinstance(password, bytearray):
                zero(password)
        return self._session

    def load_signer(self, password: Optional[bytes] = None) -> KeyFileSigner:
        """Signer over the PEM keys in config.key_dir."""
        if not self.config.key_dir:
            raise ProofchainError("no key_dir configured")
        return KeyFileSigner.from_dir(self.config.key_dir, password)

    # ============ Chain statements ============

    def next_position(self) -> ChainPosition:
        return next_position(self.session)

    def post_auth(self, signer: Signer) -> bytes:
        frozen = build_auth_assertion(self.session)
        signature = signer.sign(frozen.payload, frozen.fingerprint)
        return submit_auth_signature(self.session, signature)

    def prove_service(
        self,
        signer: Signer,
        service_name: str,
        remote_username: str,
        attempts: int = 1,
    ) -> Proof:
        """
        Bind a remote account. With attempts > 1 a chain conflict restarts the
        whole sequence from a fresh position; the signed bytes are never
        resubmitted. Other errors propagate immediately.
        """
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        session = self.session
        for attempt in range(1, attempts + 1):
            frozen = build_service_binding_assertion(session, service_name, remote_username)
            signature = signer.sign(frozen.payload, frozen.fingerprint)
            try:
                proof = submit_service_binding(session, signature, remote_username, service_name)
            except RemoteError as e:
                if not e.is_chain_conflict or attempt == attempts:
                    raise
                logger.warning(
                    "seqno %d was taken (%s), rebuilding (attempt %d/%d)",
                    frozen.position.seqno,
                    e.name,
                    attempt,
                    attempts,
                )
                continue
            self.transcript.append(frozen, strict=False)
            return proof

    # ============ Keys and users ============

    def add_key(self, armoured: str, fingerprint: str) -> str:
        return users.add_key(self.session, armoured, fingerprint)

    def revoke_key(self, kid: Optional[str] = None) -> None:
        if kid is None:
            key = self.session.principal.primary_key()
            if key is None:
                raise NoPublicKeyError(self.session.username)
            kid = key.kid
        users.revoke_key(self.session, kid)

    def lookup(self, username: str) -> User:
        return users.lookup_user(self.transport, username)

    def fetch_key(self, username: str) -> str:
        return users.fetch_public_key(self.transport, username)


# ============ Main ============

def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    config = ClientConfig.from_env()
    username = input("Username or email: ").strip()
    password = bytearray(getpass.getpass("Password: ").encode("utf-8"))

    with ProofClient(config) as client:
        try:
            session = client.login(username, password)
        except ProofchainError as e:
            print(f"[!] Login failed: {e}")
            raise SystemExit(1)
        print(f"[+] Logged in as {session.username}.")
        print(f"[+] Session: {short(session.session_id)}")

        key = session.principal.primary_key()
        if key is None:
            print("[+] No public key on this account.")
        else:
            print(f"[+] Primary key: {key.kid}")


if __name__ == "__main__":
    main()
