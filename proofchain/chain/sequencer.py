# proofchain/chain/sequencer.py
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from proofchain.api.session import Session
from proofchain.common.protocol import NextSeqnoResponse

logger = logging.getLogger(__name__)


class ChainPosition(BaseModel):
    """Where the next statement attaches: its seqno and the tip's digest."""

    model_config = ConfigDict(frozen=True)

    seqno: int = Field(ge=0)
    prev: Optional[str] = None


def next_position(session: Session, timeout: Optional[float] = None) -> ChainPosition:
    """
    Read the principal's chain tip. This reserves nothing: two callers can be
    handed the same position and only one of their submissions will land.
    Fetch a fresh position for every statement.
    """
    resp = session.get("sig/next_seqno", {"type": "PUBLIC"}, NextSeqnoResponse, timeout=timeout)
    position = ChainPosition(seqno=resp.seqno, prev=resp.prev)
    logger.debug("next chain position for %s: seqno %d", session.username, position.seqno)
    return position
