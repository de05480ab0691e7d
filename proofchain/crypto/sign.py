# proofchain/crypto/sign.py
import base64
import logging
import os
from typing import Dict, Iterable, Optional, Protocol

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, padding, rsa

from proofchain.common.errors import SigningError
from proofchain.common.utils import short

logger = logging.getLogger(__name__)


class Signer(Protocol):
    """
    The external signing capability. Given the exact payload bytes and the
    fingerprint of the key to use, return a detached signature or raise.
    May block (passphrase prompt, HSM round trip).
    """

    def sign(self, payload: bytes, fingerprint: str) -> bytes:
        ...


def public_key_fingerprint(public_key) -> str:
    """SHA-256 over the DER SubjectPublicKeyInfo, lowercase hex."""
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    digest = hashes.Hash(hashes.SHA256())
    digest.update(der)
    return digest.finalize().hex()


def load_private_key(path: str, password: Optional[bytes] = None):
    with open(path, "rb") as f:
        return serialization.load_pem_private_key(f.read(), password=password)


def _sign_with(private_key, data: bytes) -> bytes:
    if isinstance(private_key, ed25519.Ed25519PrivateKey):
        return private_key.sign(data)
    if isinstance(private_key, rsa.RSAPrivateKey):
        # RSA PKCS#1 v1.5 with SHA-256
        return private_key.sign(data, padding.PKCS1v15(), hashes.SHA256())
    raise SigningError(f"unsupported key type: {type(private_key).__name__}")


def verify(public_key, data: bytes, signature: bytes) -> bool:
    try:
        if isinstance(public_key, ed25519.Ed25519PublicKey):
            public_key.verify(signature, data)
        elif isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(signature, data, padding.PKCS1v15(), hashes.SHA256())
        else:
            return False
        return True
    except InvalidSignature:
        return False


class KeyFileSigner:
    """
    Signer backed by PEM private keys held in memory, indexed by
    fingerprint. Stand-in for a real key ring.
    """

    def __init__(self, private_keys: Iterable = ()):
        self._keys: Dict[str, object] = {}
        for key in private_keys:
            self.add(key)

    @classmethod
    def from_dir(cls, key_dir: str, password: Optional[bytes] = None) -> "KeyFileSigner":
        signer = cls()
        for name in sorted(os.listdir(key_dir)):
            if name.endswith(".pem") or name.endswith(".key"):
                signer.add(load_private_key(os.path.join(key_dir, name), password))
        return signer

    def add(self, private_key) -> str:
        fingerprint = public_key_fingerprint(private_key.public_key())
        self._keys[fingerprint] = private_key
        logger.debug("signer: loaded key %s", short(fingerprint))
        return fingerprint

    def fingerprints(self):
        return list(self._keys)

    def sign(self, payload: bytes, fingerprint: str) -> bytes:
        private_key = self._keys.get(fingerprint.lower())
        if private_key is None:
            raise SigningError(f"no private key for fingerprint {fingerprint}")
        return _sign_with(private_key, payload)


def encode_signature(signature: bytes) -> str:
    """
    Wire form of a detached signature. ASCII output from the signer (an
    armoured block) is sent as-is, binary signatures as base64.
    """
    try:
        return signature.decode("ascii")
    except UnicodeDecodeError:
        return base64.b64encode(signature).decode("ascii")
