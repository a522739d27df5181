from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Literal, Union

from .models import TaskEntity

GROUP_UNCOMPLETED = "uncompleted"
GROUP_COMPLETED = "completed"


@dataclass(frozen=True)
class Header:
    group_key: str
    expanded: bool
    count: int
    kind: Literal["header"] = "header"


@dataclass(frozen=True)
class Row:
    task: TaskEntity
    kind: Literal["row"] = "row"


ListItem = Union[Header, Row]


# PUBLIC_INTERFACE
def group_tasks(tasks: Iterable[TaskEntity], collapsed: Iterable[str] = ()) -> List[ListItem]:
    """
    Build a flat header + row sequence from an already ordered task list.

    Groups appear as 'uncompleted' then 'completed'. Empty groups are left out.
    A collapsed group keeps its header (with the full count) but emits no rows.
    Input order is preserved inside each group.
    """
    collapsed_keys = set(collapsed)
    groups: dict[str, List[TaskEntity]] = {GROUP_UNCOMPLETED: [], GROUP_COMPLETED: []}
    for t in tasks:
        groups[GROUP_COMPLETED if t["is_done"] else GROUP_UNCOMPLETED].append(t)

    items: List[ListItem] = []
    for key, members in groups.items():
        if not members:
            continue
        expanded = key not in collapsed_keys
        items.append(Header(group_key=key, expanded=expanded, count=len(members)))
        if expanded:
            items.extend(Row(task=t) for t in members)
    return items
