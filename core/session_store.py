"""
Session Store：依 scope 存取 TeamSession

三種實作，介面相同，engine 把每個呼叫都當成可能失敗：
- MemorySessionStore：process 內 dict（預設）
- FileSnapshotStore：每個 scope 一個 JSON 檔，先寫暫存檔再 os.replace（atomic）
- SqlSessionStore：SQLAlchemy，一個 scope 一列

耐久性規則：
- 寫到一半 crash 不會留下損壞的快照
- 載入時遇到損壞的快照，視為不存在（重新開始），不會讓程式掛掉
"""
from pathlib import Path
from typing import Dict, Optional, Protocol, Union
import hashlib
import json
import logging
import os
import tempfile
import threading

from sqlalchemy.orm import Session, sessionmaker

from models import SessionSnapshot, TeamSession
from core.locks import with_snapshot_lock
from database import Settings, transactional
from services.snapshot_service import dump_session, load_session

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def load(self, scope_id: str) -> Optional[TeamSession]:
        ...

    def save(self, scope_id: str, session: TeamSession) -> None:
        ...

    def delete(self, scope_id: str) -> None:
        ...


class MemorySessionStore:
    """Process 內的 store，session 物件本身就是快照"""

    def __init__(self):
        self._sessions: Dict[str, TeamSession] = {}
        self._lock = threading.Lock()

    def load(self, scope_id: str) -> Optional[TeamSession]:
        with self._lock:
            return self._sessions.get(scope_id)

    def save(self, scope_id: str, session: TeamSession) -> None:
        with self._lock:
            self._sessions[scope_id] = session

    def delete(self, scope_id: str) -> None:
        with self._lock:
            self._sessions.pop(scope_id, None)


class FileSnapshotStore:
    """
    以檔案保存快照

    Usage:
        store = FileSnapshotStore("./snapshots")
        store.save("chat-42", session)
        session = store.load("chat-42")

    檔名使用 scope ID 的 SHA-256，scope ID 可以包含任意字元。
    """

    def __init__(self, snapshot_dir: Union[str, Path]):
        self.snapshot_dir = Path(snapshot_dir)
        self.snapshot_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, scope_id: str) -> Path:
        digest = hashlib.sha256(scope_id.encode("utf-8")).hexdigest()[:32]
        return self.snapshot_dir / f"{digest}.json"

    def load(self, scope_id: str) -> Optional[TeamSession]:
        path = self._path_for(scope_id)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            session = load_session(data)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring corrupt snapshot for scope {scope_id} at {path}: {e}")
            return None
        if session.scope_id != scope_id:
            logger.warning(f"Snapshot at {path} belongs to scope {session.scope_id}, not {scope_id}")
            return None
        return session

    def save(self, scope_id: str, session: TeamSession) -> None:
        """
        寫入快照（atomic replace）

        流程：
        1. 在同一個目錄建立暫存檔並寫入
        2. flush + fsync
        3. os.replace 覆蓋正式檔案

        異常：
            OSError: 寫入失敗（暫存檔會被清掉，正式檔案保持原樣）
        """
        path = self._path_for(scope_id)
        content = json.dumps(dump_session(session), ensure_ascii=False, indent=2)
        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=str(self.snapshot_dir),
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                temp_path = Path(handle.name)
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, path)
            temp_path = None
        finally:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink()

    def delete(self, scope_id: str) -> None:
        self._path_for(scope_id).unlink(missing_ok=True)


@transactional
def _write_snapshot(db: Session, scope_id: str, revision: int, payload: dict) -> None:
    row = with_snapshot_lock(scope_id, db).first()
    if row is None:
        db.add(SessionSnapshot(scope_id=scope_id, revision=revision, payload=payload))
    else:
        row.revision = revision
        row.payload = payload


@transactional
def _delete_snapshot(db: Session, scope_id: str) -> None:
    db.query(SessionSnapshot).filter(SessionSnapshot.scope_id == scope_id).delete()


class SqlSessionStore:
    """
    以資料庫保存快照（session_snapshots 表）

    每次寫入都是一個 transaction，失敗會 rollback，不會留下半套資料。
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def load(self, scope_id: str) -> Optional[TeamSession]:
        db = self._session_factory()
        try:
            row = db.query(SessionSnapshot).filter(SessionSnapshot.scope_id == scope_id).first()
            if row is None:
                return None
            try:
                return load_session(row.payload)
            except ValueError as e:
                logger.warning(f"Ignoring corrupt snapshot row for scope {scope_id}: {e}")
                return None
        finally:
            db.close()

    def save(self, scope_id: str, session: TeamSession) -> None:
        db = self._session_factory()
        try:
            _write_snapshot(db, scope_id, session.revision, dump_session(session))
        finally:
            db.close()

    def delete(self, scope_id: str) -> None:
        db = self._session_factory()
        try:
            _delete_snapshot(db, scope_id)
        finally:
            db.close()


def build_session_store(settings: Settings, session_factory: Optional[sessionmaker] = None) -> SessionStore:
    """
    依設定建立 store

    參數：
        settings: 應用設定（store_backend / snapshot_dir）
        session_factory: SQL store 使用的 sessionmaker（預設為 database.SessionLocal）

    異常：
        ValueError: 未知的 store_backend
    """
    backend = settings.store_backend.strip().lower()
    if backend == "memory":
        return MemorySessionStore()
    if backend == "file":
        return FileSnapshotStore(settings.snapshot_dir)
    if backend == "sql":
        if session_factory is None:
            from database import SessionLocal
            session_factory = SessionLocal
        return SqlSessionStore(session_factory)
    raise ValueError(f"Unknown store backend: {settings.store_backend}")
