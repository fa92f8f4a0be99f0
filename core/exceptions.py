"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

兩類：
- 拒絕類（不修改狀態，呼叫者看得到）：SessionNotFound、DuplicateRegistration、
  RoleUnavailable、Unauthorized、InvalidSessionConfig、InvalidMemberData、SessionBusy
- 同步失敗類（狀態已修改，只記 log）：PersistenceFailure、DisplaySyncFailure
"""


class TeamDrawException(Exception):
    """所有分隊異常的基類"""
    pass


# ============ Session 相關異常 ============

class SessionNotFound(TeamDrawException):
    """scope 沒有進行中的 session"""
    def __init__(self, scope_id):
        self.scope_id = scope_id
        super().__init__(f"Session for scope {scope_id} not found")


class InvalidSessionConfig(TeamDrawException):
    """隊伍數量或每隊名額不符合要求（隊伍數 2-4，名額 >= 1）"""
    pass


class SessionBusy(TeamDrawException):
    """等待 scope lock 逾時"""
    def __init__(self, scope_id, timeout):
        self.scope_id = scope_id
        self.timeout = timeout
        super().__init__(f"Session for scope {scope_id} is busy (waited {timeout}s)")


# ============ 狀態轉換異常 ============

class InvalidStateTransition(TeamDrawException):
    """非法的狀態轉換"""
    pass


# ============ Member 相關異常 ============

class DuplicateRegistration(TeamDrawException):
    """成員已經在名單內"""
    def __init__(self, scope_id, member_id):
        self.scope_id = scope_id
        self.member_id = member_id
        super().__init__(f"Member {member_id} already registered in scope {scope_id}")


class RoleUnavailable(TeamDrawException):
    """想當 keeper，但每一隊都已經有 keeper"""
    def __init__(self, scope_id, role):
        self.scope_id = scope_id
        self.role = role
        super().__init__(f"No open {role} slot in scope {scope_id}")


class InvalidMemberData(TeamDrawException):
    """成員 ID 或顯示名稱為空"""
    pass


# ============ 權限異常 ============

class Unauthorized(TeamDrawException):
    """不是 organizer，或權限查詢本身失敗（fail closed）"""
    def __init__(self, scope_id, principal_id):
        self.scope_id = scope_id
        self.principal_id = principal_id
        super().__init__(f"Principal {principal_id} is not an organizer of scope {scope_id}")


# ============ 同步失敗（只記 log） ============

class PersistenceFailure(TeamDrawException):
    """Session store 讀寫失敗"""
    pass


class DisplaySyncFailure(TeamDrawException):
    """Display transport 建立 / 更新失敗"""
    pass
