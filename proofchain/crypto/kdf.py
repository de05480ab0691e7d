# proofchain/crypto/kdf.py
import hashlib
import hmac
from typing import Union

from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from proofchain.common.utils import zero


# Fixed by the login protocol (pwh_version 1).
SCRYPT_N = 32768
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_LEN = 224

AUTHENTICATOR_START = 192
AUTHENTICATOR_END = 224

ByteLike = Union[bytes, bytearray, memoryview]


def stretch(password: ByteLike, salt: ByteLike) -> bytearray:
    """
    scrypt(password, salt, N=32768, r=8, p=1, len=224)

    Returned as a bytearray so the caller can zero it. The KDF itself hands
    back immutable bytes; that intermediate is dropped immediately.
    """
    kdf = Scrypt(
        salt=bytes(salt),
        length=SCRYPT_LEN,
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
    )
    return bytearray(kdf.derive(password))


def derive_authenticator(password: ByteLike, salt: ByteLike) -> bytearray:
    """
    Stretch the password and keep the 32-byte slice [192:224).
    The password is read, never copied or stored.
    """
    stretched = stretch(password, salt)
    try:
        return stretched[AUTHENTICATOR_START:AUTHENTICATOR_END]
    finally:
        zero(stretched)


def hmac_sha512(key: ByteLike, message: ByteLike) -> bytes:
    return hmac.new(key, message, hashlib.sha512).digest()


def login_hmac(password: ByteLike, salt: ByteLike, login_session: ByteLike) -> bytes:
    """
    The value actually sent to the server:
        HMAC-SHA512(key=authenticator, msg=login_session)
    The authenticator is zeroed before returning, on every path.
    """
    authenticator = derive_authenticator(password, salt)
    try:
        return hmac_sha512(authenticator, login_session)
    finally:
        zero(authenticator)
