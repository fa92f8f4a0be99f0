"""
並發控制工具

提供兩層鎖定機制，防止競態條件（Race Condition）：

1. Process 內：每個 scope 一把 threading.Lock（ScopeLockRegistry），
   同一個 scope 的修改操作（建立 / 加入 / 重新分隊）一次只跑一個
2. Database-level：SqlSessionStore 寫入快照時使用 SELECT ... FOR UPDATE
   （悲觀鎖），避免多個 process 同時覆寫同一列
"""
from contextlib import contextmanager
from typing import Dict, Optional
import logging
import threading

from sqlalchemy.orm import Session, Query

from models import SessionSnapshot
from core.exceptions import SessionBusy

logger = logging.getLogger(__name__)


class ScopeLockRegistry:
    """
    每個 scope 一把鎖，有人使用時才存在

    使用場景：
    - AssignmentEngine 的所有修改操作
    - 備份計時器複製 session 快照時

    範例：
        with registry.hold(scope_id):
            session.revision += 1

    注意：
        - 不同 scope 之間互不影響，不需要 lock ordering
        - acquire 有上限（timeout），逾時拋出 SessionBusy，不會無限等待
        - 每把鎖記錄持有 + 等待中的人數，歸零時從表中移除，
          查詢不存在或已結束的 scope 不會留下鎖
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}
        self._registry_lock = threading.Lock()

    def _checkout(self, scope_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(scope_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[scope_id] = lock
            self._users[scope_id] = self._users.get(scope_id, 0) + 1
            return lock

    def _checkin(self, scope_id: str) -> None:
        with self._registry_lock:
            remaining = self._users[scope_id] - 1
            if remaining:
                self._users[scope_id] = remaining
            else:
                del self._users[scope_id]
                del self._locks[scope_id]

    @contextmanager
    def hold(self, scope_id: str, timeout: Optional[float] = None):
        """
        取得 scope lock，離開 with 區塊時釋放

        參數：
            scope_id: scope 識別碼
            timeout: 最長等待秒數（預設使用 registry 的設定）

        異常：
            SessionBusy: 等待逾時
        """
        wait = self.timeout if timeout is None else timeout
        lock = self._checkout(scope_id)
        try:
            if not lock.acquire(timeout=wait):
                logger.warning(f"Timed out after {wait}s waiting for scope lock {scope_id}")
                raise SessionBusy(scope_id, wait)
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(scope_id)


def with_snapshot_lock(scope_id: str, db: Session) -> Query:
    """
    鎖定一個 SessionSnapshot（行級鎖）

    使用場景：
    - 覆寫快照時，確保整個 transaction 期間不被其他 process 修改

    範例：
        row = with_snapshot_lock(scope_id, db).first()
        if row is None:
            db.add(SessionSnapshot(...))

    參數：
        scope_id: scope 識別碼
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 或 .one() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - SQLite 不支援 FOR UPDATE，SQLAlchemy 會直接省略
    """
    return db.query(SessionSnapshot).filter(
        SessionSnapshot.scope_id == scope_id
    ).with_for_update(nowait=False)
