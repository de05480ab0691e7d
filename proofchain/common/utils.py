# proofchain/common/utils.py
import base64
import hashlib
import time


def b64encode(b: bytes) -> str:
    return base64.b64encode(b).decode("utf-8")


def b64decode(s: str) -> bytes:
    return base64.b64decode(s.encode("utf-8"), validate=True)


def now_s() -> int:
    return int(time.time())


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def zero(buf: bytearray) -> None:
    """Overwrite a mutable buffer with zeros in place."""
    for i in range(len(buf)):
        buf[i] = 0


def short(value: str, keep: int = 8) -> str:
    """Truncated identifier, safe for log lines."""
    if len(value) <= keep:
        return value
    return value[:keep] + "..."
