"""
分隊服務：決定成員被放到哪一隊

純計算邏輯，不負責 lock / 持久化 / 顯示

規則：
- keeper：在所有「還沒有 keeper」的隊伍中均勻隨機挑一隊
- field：在「field 還沒滿」的隊伍中找人數最少的，平手時隨機
- 全部 field 都滿了：放到替補人數最少的隊伍，平手時隨機

least-loaded + 隨機平手的好處：
- 不需要事先知道總人數，任何加入順序下隊伍人數都接近平均
- 參加者猜不到自己會被分到哪一隊
"""
import random
from typing import Dict, List, Optional, Sequence, Tuple

from models import Member, Placement, Role, Slot, Team, TeamSession


def pick_keeper_team(teams: Sequence[Team], rng: random.Random) -> Optional[int]:
    """
    挑一個空的 keeper 位置

    返回：
        隊伍 index，所有隊伍都有 keeper 時返回 None
    """
    open_teams = [index for index, team in enumerate(teams) if team.keeper_id is None]
    if not open_teams:
        return None
    return rng.choice(open_teams)


def pick_field_team(teams: Sequence[Team], capacity: int, rng: random.Random) -> Optional[int]:
    """
    挑 field 人數最少（且未滿）的隊伍

    返回：
        隊伍 index，所有隊伍 field 都滿時返回 None
    """
    open_teams = [index for index, team in enumerate(teams) if len(team.field_ids) < capacity]
    if not open_teams:
        return None
    min_load = min(len(teams[index].field_ids) for index in open_teams)
    candidates = [index for index in open_teams if len(teams[index].field_ids) == min_load]
    return rng.choice(candidates)


def pick_substitute_team(teams: Sequence[Team], rng: random.Random) -> int:
    min_load = min(len(team.substitute_ids) for team in teams)
    candidates = [index for index, team in enumerate(teams) if len(team.substitute_ids) == min_load]
    return rng.choice(candidates)


def place_field_player(
    teams: List[Team], member_id: str, capacity: int, rng: random.Random
) -> Placement:
    """
    把一個 field 玩家放進隊伍（滿了就當替補），直接修改 teams

    RegisterMember 與 Reshuffle 第二階段共用同一套規則
    """
    index = pick_field_team(teams, capacity, rng)
    if index is not None:
        teams[index].field_ids.append(member_id)
        return Placement(team_index=index, slot=Slot.FIELD)

    index = pick_substitute_team(teams, rng)
    teams[index].substitute_ids.append(member_id)
    return Placement(team_index=index, slot=Slot.SUBSTITUTE)


def place_keeper(teams: List[Team], member_id: str, rng: random.Random) -> Optional[Placement]:
    """
    把 keeper 放到一個空的 keeper 位置，直接修改 teams

    沒有空位時返回 None，不會改成 field 或替補（由呼叫者拒絕）
    """
    index = pick_keeper_team(teams, rng)
    if index is None:
        return None
    teams[index].keeper_id = member_id
    return Placement(team_index=index, slot=Slot.KEEPER)


def reshuffle_layout(
    session: TeamSession, rng: random.Random
) -> Tuple[List[Team], Dict[str, Placement]]:
    """
    以目前的 roster 重新隨機分隊（不修改 session）

    流程：
    1. 丟掉所有現有位置，只保留 (id, display_name, desired_role)
    2. keeper 階段：打亂想當 keeper 的人，前 team_count 個各佔一隊的 keeper 位置
       （隊伍也打亂，keeper 不會固定落在前幾隊），多出來的降級為 field
    3. field 階段：打亂 field 池（原本的 field + 降級的 keeper），
       逐一套用 place_field_player 的規則

    注意：
        結果滿足平衡條件，但並非所有可能的分隊方式機率都相同

    返回：
        (新的 teams, member_id -> Placement)
    """
    teams = [Team() for _ in range(session.team_count)]
    placements: Dict[str, Placement] = {}

    # 依 ID 排序後再打亂，讓固定 seed 的結果與 roster 插入順序無關
    members: List[Member] = sorted(session.roster.values(), key=lambda m: m.id)
    keepers = [m.id for m in members if m.desired_role == Role.KEEPER]
    field_pool = [m.id for m in members if m.desired_role != Role.KEEPER]

    # 1) keepers
    rng.shuffle(keepers)
    team_order = list(range(session.team_count))
    rng.shuffle(team_order)
    seated = keepers[:session.team_count]
    for team_index, member_id in zip(team_order, seated):
        teams[team_index].keeper_id = member_id
        placements[member_id] = Placement(team_index=team_index, slot=Slot.KEEPER)
    field_pool.extend(keepers[session.team_count:])

    # 2) field players
    rng.shuffle(field_pool)
    for member_id in field_pool:
        placements[member_id] = place_field_player(
            teams, member_id, session.capacity_per_team, rng
        )

    return teams, placements
