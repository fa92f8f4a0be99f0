"""
資料模型

- 領域模型（dataclass）：TeamSession / Team / Member / Placement
- 持久化模型（SQLAlchemy）：SessionSnapshot，供 SqlSessionStore 使用

TeamSession 只由 AssignmentEngine 持有與修改，不以值傳遞共享。
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from sqlalchemy import Column, DateTime, Integer, JSON, String

from database import Base


class Role(str, Enum):
    """成員想要的角色"""
    FIELD = "field"
    KEEPER = "keeper"


class Slot(str, Enum):
    """成員實際被放到的位置"""
    KEEPER = "keeper"
    FIELD = "field"
    SUBSTITUTE = "substitute"


class SessionStatus(str, Enum):
    OPEN = "open"
    REPLACED = "replaced"  # 同一個 scope 建立了新的 session
    CLOSED = "closed"  # organizer 結束 session


@dataclass(frozen=True)
class Placement:
    """由 engine 決定的位置，呼叫者不能指定"""
    team_index: int
    slot: Slot

    @property
    def label(self) -> str:
        if self.slot == Slot.SUBSTITUTE:
            return f"substitute@{self.team_index}"
        return str(self.team_index)


@dataclass
class Member:
    id: str
    display_name: str
    desired_role: Role
    placement: Optional[Placement] = None


@dataclass
class Team:
    """一個隊伍：最多一個 keeper、最多 capacity 個 field、不限數量的替補"""
    keeper_id: Optional[str] = None
    field_ids: List[str] = field(default_factory=list)
    substitute_ids: List[str] = field(default_factory=list)

    def member_ids(self) -> List[str]:
        ids = [self.keeper_id] if self.keeper_id else []
        return ids + self.field_ids + self.substitute_ids


@dataclass
class TeamSession:
    """
    一個 scope（聊天室）內正在進行的分隊回合

    不變量（每次操作完成後都成立）：
    1. 每個 member ID 在所有隊伍的 keeper / field / substitutes 中至多出現一次
    2. len(team.field_ids) <= capacity_per_team
    3. 每隊至多一個 keeper
    4. roster 只增不減（除非整個 session 被取代或結束），reshuffle 只改 placement
    """
    scope_id: str
    team_count: int
    capacity_per_team: int
    teams: List[Team] = field(default_factory=list)
    roster: Dict[str, Member] = field(default_factory=dict)
    revision: int = 0
    display_handle: Optional[str] = None
    status: SessionStatus = SessionStatus.OPEN
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not self.teams:
            self.teams = [Team() for _ in range(self.team_count)]

    @property
    def keeper_count(self) -> int:
        return sum(1 for team in self.teams if team.keeper_id)


class SessionSnapshot(Base):
    """SqlSessionStore 的快照表：每個 scope 一列，payload 為 dump_session() 的結果"""
    __tablename__ = "session_snapshots"

    scope_id = Column(String(255), primary_key=True)
    revision = Column(Integer, nullable=False, default=0)
    payload = Column(JSON, nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
