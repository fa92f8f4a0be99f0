"""
Assignment Engine：管理每個 scope 的分隊 session

職責：
1. 建立 session（organizer 限定，會取代同一個 scope 的舊 session）
2. 成員報名（keeper / field，名額滿了當替補）
3. 重新分隊（organizer 限定，roster 不變，只改位置）
4. 結束 session（organizer 限定）
5. 查詢目前的渲染結果（不取鎖）

每個修改操作的流程：
    取得 scope lock → 修改 roster / teams → 提升 revision
    → 存到 store → 同步顯示面 → 釋放 lock → 回傳結果

同步失敗的處理：
- store / 顯示面失敗只記 log，不回滾、不影響回傳結果
- 記憶體內的 session 是權威來源

原則：
- 單一職責：規則在 placement_service，顯示在 render_service，這裡只管流程
- 拒絕類錯誤（重複報名、沒有 keeper 位置、權限不足）不重試，直接拋給呼叫者
"""
from typing import Dict, List, Optional, Union
import logging
import random
import threading

from models import Member, Placement, Role, SessionStatus, TeamSession
from core.authorization import Authorization
from core.display_sync import DisplaySynchronizer
from core.exceptions import (
    DuplicateRegistration,
    InvalidMemberData,
    InvalidSessionConfig,
    PersistenceFailure,
    RoleUnavailable,
    SessionNotFound,
    Unauthorized,
)
from core.locks import ScopeLockRegistry
from core.session_store import SessionStore
from core.state_machine import SessionStateMachine
from services.placement_service import place_field_player, place_keeper, reshuffle_layout
from services.render_service import RenderedState, render_session
from services.snapshot_service import dump_session, load_session
from services.state_service import bump_revision

logger = logging.getLogger(__name__)

MIN_TEAMS = 2
MAX_TEAMS = 4


class AssignmentEngine:
    """分隊 session 的生命週期管理器"""

    def __init__(
        self,
        store: SessionStore,
        synchronizer: DisplaySynchronizer,
        authorization: Authorization,
        lock_registry: Optional[ScopeLockRegistry] = None,
        default_capacity_per_team: int = 5,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.synchronizer = synchronizer
        self.authorization = authorization
        self.locks = lock_registry or ScopeLockRegistry()
        self.default_capacity_per_team = default_capacity_per_team
        self.rng = rng or random.SystemRandom()

        self._live: Dict[str, TeamSession] = {}
        self._published: Dict[str, RenderedState] = {}
        self._table_lock = threading.Lock()

    # ============ 修改操作 ============

    def create_session(
        self,
        scope_id: str,
        team_count: int,
        capacity_per_team: Optional[int] = None,
        requester_id: str = "",
    ) -> RenderedState:
        """
        建立新的 session（取代舊的）

        前置條件：
        1. requester 必須是 organizer
        2. team_count 在 2-4 之間，capacity_per_team >= 1

        參數：
            scope_id: 聊天室 / 對話的識別碼
            team_count: 隊伍數量
            capacity_per_team: 每隊 field 名額（省略時使用預設值），另外每隊有一個 keeper 位置
            requester_id: 發出請求的人

        返回：
            新 session 的渲染結果

        異常：
            Unauthorized: 不是 organizer，或權限查詢失敗
            InvalidSessionConfig: 隊伍數量或名額不合法
        """
        self._require_organizer(scope_id, requester_id)

        capacity = self.default_capacity_per_team if capacity_per_team is None else capacity_per_team
        if not isinstance(team_count, int) or not MIN_TEAMS <= team_count <= MAX_TEAMS:
            raise InvalidSessionConfig(
                f"Team count must be between {MIN_TEAMS} and {MAX_TEAMS}, got {team_count}"
            )
        if not isinstance(capacity, int) or capacity < 1:
            raise InvalidSessionConfig(f"Capacity per team must be at least 1, got {capacity}")

        with self.locks.hold(scope_id):
            previous = self._live.get(scope_id)
            if previous is not None and previous.status == SessionStatus.OPEN:
                SessionStateMachine.transition(previous, SessionStatus.REPLACED)

            session = TeamSession(
                scope_id=scope_id,
                team_count=team_count,
                capacity_per_team=capacity,
            )
            bump_revision(session, reason="session_created")
            with self._table_lock:
                self._live[scope_id] = session

            logger.info(
                f"Created session for scope {scope_id}: {team_count} teams x {capacity} "
                f"(by {requester_id}{', replacing previous' if previous else ''})"
            )
            return self._commit(session)

    def register_member(
        self,
        scope_id: str,
        member_id: str,
        display_name: str,
        desired_role: Union[Role, str],
    ) -> Placement:
        """
        成員報名

        流程：
        1. 檢查資料與 session 是否存在、是否重複報名
        2. keeper：隨機挑一個沒有 keeper 的隊伍；全部都有 → RoleUnavailable
           （不會改成 field 或替補）
        3. field：放進人數最少的隊伍（平手隨機）；全部滿了 → 替補
        4. 存檔 + 同步顯示面（失敗只記 log）

        返回：
            Placement（不論顯示面同步是否成功）

        異常：
            InvalidMemberData: member_id / display_name 為空，或角色不合法
            SessionNotFound: scope 沒有 session
            DuplicateRegistration: 已經報名過（不修改狀態）
            RoleUnavailable: 沒有空的 keeper 位置（不修改狀態）
        """
        member_id = (member_id or "").strip()
        display_name = (display_name or "").strip()
        if not member_id or not display_name:
            raise InvalidMemberData("Member id and display name must not be empty")
        try:
            role = Role(desired_role)
        except ValueError:
            raise InvalidMemberData(f"Unknown role: {desired_role}")

        with self.locks.hold(scope_id):
            session = self._require_session(scope_id)

            if member_id in session.roster:
                raise DuplicateRegistration(scope_id, member_id)

            if role == Role.KEEPER:
                placement = place_keeper(session.teams, member_id, self.rng)
                if placement is None:
                    raise RoleUnavailable(scope_id, role.value)
            else:
                placement = place_field_player(
                    session.teams, member_id, session.capacity_per_team, self.rng
                )

            session.roster[member_id] = Member(
                id=member_id,
                display_name=display_name,
                desired_role=role,
                placement=placement,
            )
            bump_revision(session, reason="member_registered")

            logger.info(
                f"Member {member_id} ({display_name}) joined scope {scope_id} "
                f"as {role.value}: {placement.slot.value} on team {placement.team_index}"
            )
            self._commit(session)
            return placement

    def reshuffle(self, scope_id: str, requester_id: str) -> RenderedState:
        """
        重新分隊（organizer 限定）

        roster 不變，所有人的位置重新計算，規則見 placement_service.reshuffle_layout

        異常：
            Unauthorized: 不是 organizer，或權限查詢失敗
            SessionNotFound: scope 沒有 session
        """
        self._require_organizer(scope_id, requester_id)

        with self.locks.hold(scope_id):
            session = self._require_session(scope_id)

            teams, placements = reshuffle_layout(session, self.rng)
            session.teams = teams
            for member_id, placement in placements.items():
                session.roster[member_id].placement = placement
            bump_revision(session, reason="reshuffled")

            logger.info(
                f"Reshuffled scope {scope_id} ({len(session.roster)} members, by {requester_id})"
            )
            return self._commit(session)

    def end_session(self, scope_id: str, requester_id: str) -> None:
        """
        結束 session（organizer 限定）

        session 從記憶體與 store 中刪除，之後的操作會得到 SessionNotFound

        異常：
            Unauthorized: 不是 organizer，或權限查詢失敗
            SessionNotFound: scope 沒有 session
        """
        self._require_organizer(scope_id, requester_id)

        with self.locks.hold(scope_id):
            session = self._require_session(scope_id)
            SessionStateMachine.transition(session, SessionStatus.CLOSED)
            with self._table_lock:
                self._live.pop(scope_id, None)
                self._published.pop(scope_id, None)
            try:
                self.store.delete(scope_id)
            except Exception as e:
                failure = PersistenceFailure(f"Failed to delete snapshot for scope {scope_id}: {e}")
                logger.error(str(failure), exc_info=True)

            logger.info(f"Ended session for scope {scope_id} (by {requester_id})")

    # ============ 查詢 ============

    def get_rendered_state(self, scope_id: str) -> RenderedState:
        """
        取得目前的渲染結果（不取 lock）

        返回最後一次修改完成時的結果；可能看到正在被取代的舊狀態（可接受）

        異常：
            SessionNotFound: scope 沒有 session
        """
        with self._table_lock:
            rendered = self._published.get(scope_id)
        if rendered is not None:
            return rendered

        session = self._load_from_store(scope_id)
        if session is None:
            raise SessionNotFound(scope_id)
        return render_session(session)

    def live_scopes(self) -> List[str]:
        with self._table_lock:
            return list(self._live)

    def snapshot_sessions(self) -> List[TeamSession]:
        """
        複製所有進行中的 session（供備份使用）

        每個 session 在自己的 scope lock 內複製，取不到鎖的 scope 這次跳過
        """
        copies = []
        for scope_id in self.live_scopes():
            try:
                with self.locks.hold(scope_id):
                    with self._table_lock:
                        session = self._live.get(scope_id)
                    if session is not None:
                        copies.append(load_session(dump_session(session)))
            except Exception as e:
                logger.warning(f"Skipping snapshot of scope {scope_id}: {e}")
        return copies

    # ============ 內部工具 ============

    def _require_organizer(self, scope_id: str, principal_id: str) -> None:
        try:
            allowed = self.authorization.is_organizer(scope_id, principal_id)
        except Exception as e:
            logger.warning(
                f"Authorization check failed for {principal_id} in scope {scope_id}: {e}"
            )
            raise Unauthorized(scope_id, principal_id) from e

        if not allowed:
            logger.warning(f"Rejected privileged call by {principal_id} in scope {scope_id}")
            raise Unauthorized(scope_id, principal_id)

    def _require_session(self, scope_id: str) -> TeamSession:
        """取得 session（必須在 scope lock 內呼叫）"""
        with self._table_lock:
            session = self._live.get(scope_id)
        if session is None:
            session = self._load_from_store(scope_id)
            if session is None:
                raise SessionNotFound(scope_id)
            with self._table_lock:
                self._live[scope_id] = session
            logger.info(f"Restored session for scope {scope_id} at revision {session.revision}")

        SessionStateMachine.ensure_open(session)
        return session

    def _load_from_store(self, scope_id: str) -> Optional[TeamSession]:
        try:
            return self.store.load(scope_id)
        except Exception as e:
            failure = PersistenceFailure(f"Failed to load snapshot for scope {scope_id}: {e}")
            logger.error(str(failure), exc_info=True)
            return None

    def _persist(self, session: TeamSession) -> None:
        try:
            self.store.save(session.scope_id, session)
        except Exception as e:
            failure = PersistenceFailure(
                f"Failed to save scope {session.scope_id} at revision {session.revision}: {e}"
            )
            logger.error(str(failure), exc_info=True)

    def _commit(self, session: TeamSession) -> RenderedState:
        """
        修改完成後的收尾（必須在 scope lock 內呼叫）

        流程：
        1. 存檔
        2. 同步顯示面；handle 變了就再存一次，讓快照帶著目前的 handle
        3. 發佈渲染結果給 get_rendered_state
        """
        self._persist(session)

        rendered = render_session(session)
        handle_before = session.display_handle
        try:
            self.synchronizer.upsert(session, rendered)
        except Exception as e:
            logger.error(
                f"Display sync failed for scope {session.scope_id} at revision {session.revision}: {e}",
                exc_info=True
            )
        if session.display_handle != handle_before:
            self._persist(session)

        with self._table_lock:
            self._published[session.scope_id] = rendered
        return rendered
