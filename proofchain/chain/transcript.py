# proofchain/chain/transcript.py
import logging
from typing import Iterable, List, Optional

from proofchain.chain.sequencer import ChainPosition
from proofchain.chain.statement import FrozenStatement
from proofchain.common.errors import ChainLinkError

logger = logging.getLogger(__name__)


class ChainTranscript:
    """
    In-memory record of accepted chain statements. Each appended statement
    must carry seqno = tip + 1 and prev = digest of the tip payload.
    """

    def __init__(self, tip_seqno: int = 0, tip_digest: Optional[str] = None):
        self._tip_seqno = tip_seqno
        self._tip_digest = tip_digest
        self._entries: List[FrozenStatement] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[FrozenStatement]:
        return list(self._entries)

    @property
    def tip_seqno(self) -> int:
        return self._tip_seqno

    @property
    def tip_digest(self) -> Optional[str]:
        return self._tip_digest

    def next_position(self) -> ChainPosition:
        return ChainPosition(seqno=self._tip_seqno + 1, prev=self._tip_digest)

    def check(self, frozen: FrozenStatement) -> None:
        got = frozen.position
        if got is None:
            raise ValueError(f"{frozen.statement.type} statements are not chain-anchored")
        expected = self.next_position()
        if got != expected:
            raise ChainLinkError(expected, got)

    def append(self, frozen: FrozenStatement, strict: bool = True) -> None:
        """
        Record an accepted statement. With strict=False a statement that does
        not link (another writer moved the tip) starts a new segment.
        """
        try:
            self.check(frozen)
        except ChainLinkError:
            if strict:
                raise
            logger.info(
                "chain moved from seqno %d to %d outside this transcript",
                self._tip_seqno,
                frozen.position.seqno - 1,
            )
            self._entries.clear()
        self._entries.append(frozen)
        self._tip_seqno = frozen.position.seqno
        self._tip_digest = frozen.digest


def verify_chain(statements: Iterable[FrozenStatement]) -> bool:
    """True when each statement links to the one before it."""
    transcript = None
    for frozen in statements:
        position = frozen.position
        if position is None:
            return False
        if transcript is None:
            transcript = ChainTranscript(position.seqno - 1, position.prev)
        try:
            transcript.append(frozen)
        except ChainLinkError:
            return False
    return True
