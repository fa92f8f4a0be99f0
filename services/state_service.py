"""
狀態版本服務

每次修改 session 都提升 revision，讓顯示端可以判斷畫面是否過期
"""
import logging

from models import TeamSession

logger = logging.getLogger(__name__)


def bump_revision(session: TeamSession, reason: str) -> int:
    session.revision += 1
    logger.debug(f"Scope {session.scope_id} revision -> {session.revision} ({reason})")
    return session.revision
