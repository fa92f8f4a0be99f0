"""
備份計時器：定期把所有進行中的 session 複製到備份 store

只用於災難復原，與每次操作的存檔互相獨立。
任何錯誤都只記 log，不會影響 engine 或 API。
"""
import logging
import threading

from core.session_manager import AssignmentEngine
from core.session_store import SessionStore

logger = logging.getLogger(__name__)


class SnapshotBackupTimer:
    """
    範例：
        timer = SnapshotBackupTimer(engine, FileSnapshotStore("./backups"), interval=60)
        timer.start()
        ...
        timer.stop()
    """

    def __init__(self, engine: AssignmentEngine, backup_store: SessionStore, interval: float):
        if interval <= 0:
            raise ValueError(f"Backup interval must be positive, got {interval}")
        self.engine = engine
        self.backup_store = backup_store
        self.interval = interval
        self.stop_event = threading.Event()
        self.thread = threading.Thread(target=self.run, name="snapshot-backup", daemon=True)

    def start(self) -> None:
        logger.info(f"Starting snapshot backup every {self.interval}s")
        self.thread.start()

    def stop(self) -> None:
        self.stop_event.set()
        if self.thread.is_alive():
            self.thread.join(timeout=2.0)

    def run(self) -> None:
        while not self.stop_event.wait(self.interval):
            self.backup_once()

    def backup_once(self) -> int:
        """
        備份一次

        返回：
            成功備份的 session 數量
        """
        saved = 0
        try:
            sessions = self.engine.snapshot_sessions()
        except Exception as e:
            logger.error(f"Snapshot backup could not collect sessions: {e}", exc_info=True)
            return 0

        for session in sessions:
            try:
                self.backup_store.save(session.scope_id, session)
                saved += 1
            except Exception as e:
                logger.error(f"Backup of scope {session.scope_id} failed: {e}", exc_info=True)

        logger.debug(f"Snapshot backup saved {saved}/{len(sessions)} sessions")
        return saved
