"""
狀態機：集中管理 TeamSession 的狀態轉換

OPEN ──(同一個 scope 建立新 session)──> REPLACED
OPEN ──(organizer 結束 session)──────> CLOSED

REPLACED / CLOSED 都是終點，不能再轉換。
OPEN 期間沒有「停止報名」狀態：報名與重新分隊只受權限與名額限制。
"""
import logging

from models import SessionStatus, TeamSession
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class SessionStateMachine:
    TRANSITIONS = {
        SessionStatus.OPEN: {SessionStatus.REPLACED, SessionStatus.CLOSED},
        SessionStatus.REPLACED: set(),
        SessionStatus.CLOSED: set(),
    }

    @classmethod
    def can_transition(cls, current: SessionStatus, target: SessionStatus) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def transition(cls, session: TeamSession, target: SessionStatus) -> TeamSession:
        """
        轉換 session 狀態

        異常：
            InvalidStateTransition: 非法的狀態轉換
        """
        if not cls.can_transition(session.status, target):
            raise InvalidStateTransition(
                f"Cannot transition scope {session.scope_id} from "
                f"{session.status.value} to {target.value}"
            )
        logger.info(
            f"Scope {session.scope_id} session {session.status.value} -> {target.value}"
        )
        session.status = target
        return session

    @staticmethod
    def ensure_open(session: TeamSession) -> None:
        if session.status != SessionStatus.OPEN:
            raise InvalidStateTransition(
                f"Session for scope {session.scope_id} is {session.status.value}"
            )
