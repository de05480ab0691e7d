# proofchain/common/errors.py
from typing import Optional


# Status names the service uses when a statement references a chain
# position that is no longer the tip.
CHAIN_CONFLICT_NAMES = frozenset({"SIG_OLD_SEQNO", "SIG_BAD_TOTAL_ORDER"})


class ProofchainError(Exception):
    """Base class for everything raised by this package."""


class TransportError(ProofchainError):
    """Network failure, timeout, or a response that could not be decoded."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class RemoteError(ProofchainError):
    """The service answered with a non-OK status."""

    def __init__(self, code: int, name: str, desc: Optional[str] = None):
        self.code = code
        self.name = name
        self.desc = desc
        message = f"{name} ({code})"
        if desc:
            message = f"{message}: {desc}"
        super().__init__(message)

    @property
    def is_chain_conflict(self) -> bool:
        # Retryable only from a fresh next_position(), never by resubmitting.
        return self.name in CHAIN_CONFLICT_NAMES


class NoPublicKeyError(ProofchainError):
    def __init__(self, username: str):
        super().__init__(f"{username or 'principal'} has no primary public key")
        self.username = username


class SaltConsumedError(ProofchainError):
    """SaltMaterial was used after it had been destroyed."""


class SigningError(ProofchainError):
    pass


class ChainLinkError(ProofchainError):
    """A statement does not attach to the recorded chain tip."""

    def __init__(self, expected, got):
        super().__init__(
            f"statement at seqno {got.seqno} (prev {got.prev}) does not follow "
            f"seqno {expected.seqno - 1}; expected seqno {expected.seqno} prev {expected.prev}"
        )
        self.expected = expected
        self.got = got
