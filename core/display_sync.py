"""
Display Synchronizer：把 session 狀態同步到外部顯示面（例如聊天室裡的一則訊息）

「更新，失敗就重建」：
- session 有 display_handle → 嘗試 update
- transport 回報顯示面不存在 / 無法編輯 → create 一個新的，把新 handle 存回 session
  （舊 handle 直接丟掉，不會再使用）

顯示只是 session 的鏡像，同步失敗時 session 狀態仍然是權威來源。
"""
from typing import Dict, Optional, Protocol
import logging
import threading
import uuid

from models import TeamSession
from core.exceptions import DisplaySyncFailure
from services.render_service import RenderedState, render_session

logger = logging.getLogger(__name__)


class DisplaySurfaceMissing(Exception):
    """顯示面不存在或無法編輯（觸發重建）"""
    def __init__(self, handle):
        self.handle = handle
        super().__init__(f"Display surface {handle} is missing or not editable")


class DisplayTransport(Protocol):
    def create(self, scope_id: str, content: str) -> str:
        ...

    def update(self, handle: str, content: str) -> None:
        ...


class InMemoryDisplayBoard:
    """
    Process 內的顯示面，前端透過 GET /api/displays/{handle} 短輪詢

    可安全地被多個執行緒同時使用
    """

    def __init__(self):
        self._surfaces: Dict[str, str] = {}
        self._owners: Dict[str, str] = {}
        self._lock = threading.Lock()

    def create(self, scope_id: str, content: str) -> str:
        handle = uuid.uuid4().hex[:12]
        with self._lock:
            self._surfaces[handle] = content
            self._owners[handle] = scope_id
        return handle

    def update(self, handle: str, content: str) -> None:
        with self._lock:
            if handle not in self._surfaces:
                raise DisplaySurfaceMissing(handle)
            self._surfaces[handle] = content

    def remove(self, handle: str) -> None:
        with self._lock:
            self._surfaces.pop(handle, None)
            self._owners.pop(handle, None)

    def get(self, handle: str) -> Optional[str]:
        with self._lock:
            return self._surfaces.get(handle)

    def owner_of(self, handle: str) -> Optional[str]:
        with self._lock:
            return self._owners.get(handle)


class DisplaySynchronizer:
    """渲染 session 並 upsert 到 transport"""

    def __init__(self, transport: DisplayTransport):
        self.transport = transport

    def upsert(self, session: TeamSession, rendered: Optional[RenderedState] = None) -> str:
        """
        同步 session 到顯示面

        參數：
            session: 要顯示的 session（display_handle 可能被更新）
            rendered: 已經算好的渲染結果（省略時重新渲染）

        返回：
            目前使用的 handle

        異常：
            DisplaySyncFailure: 重建顯示面（create）失敗
        """
        content = (rendered or render_session(session)).text
        handle = session.display_handle

        if handle is not None:
            try:
                self.transport.update(handle, content)
                return handle
            except Exception as e:
                # transport 的任何 update 錯誤都代表這個顯示面不能再用
                logger.info(
                    f"Display surface {handle} for scope {session.scope_id} unusable ({e}), recreating"
                )

        try:
            new_handle = self.transport.create(session.scope_id, content)
        except Exception as e:
            raise DisplaySyncFailure(
                f"Failed to create display for scope {session.scope_id}: {e}"
            ) from e

        session.display_handle = new_handle
        logger.info(f"Created display surface {new_handle} for scope {session.scope_id}")
        return new_handle
