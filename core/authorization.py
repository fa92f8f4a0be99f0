"""
權限檢查：「principal 在這個 scope 是不是 organizer？」

Engine 只透過 Authorization 介面詢問，不直接接觸身分提供者。
查詢拋出的任何異常都由 engine 視為拒絕（fail closed）。
"""
from typing import Dict, Iterable, Optional, Protocol, Set


class Authorization(Protocol):
    def is_organizer(self, scope_id: str, principal_id: str) -> bool:
        ...


class AllowlistAuthorization:
    """
    以名單判斷 organizer

    - global_organizers：在所有 scope 都有權限
    - scope_organizers：只在特定 scope 有權限

    範例：
        auth = AllowlistAuthorization({"admin"})
        auth.grant("chat-42", "alice")
    """

    def __init__(
        self,
        global_organizers: Iterable[str] = (),
        scope_organizers: Optional[Dict[str, Iterable[str]]] = None,
    ):
        self._global: Set[str] = set(global_organizers)
        self._per_scope: Dict[str, Set[str]] = {
            scope_id: set(ids) for scope_id, ids in (scope_organizers or {}).items()
        }

    def grant(self, scope_id: str, principal_id: str) -> None:
        self._per_scope.setdefault(scope_id, set()).add(principal_id)

    def is_organizer(self, scope_id: str, principal_id: str) -> bool:
        if not principal_id:
            return False
        return principal_id in self._global or principal_id in self._per_scope.get(scope_id, set())
