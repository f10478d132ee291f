"""In-memory index over the flat position collection.

Positions point at their manager through `reports_to_position_id`. The graph
is built once per request so that direct-report lookups and depth walks do
not rescan the whole position list.
"""
from __future__ import annotations

from collections import defaultdict, deque
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.utils import id_str, round1

MANAGEMENT_KEYWORDS = ("manager", "director", "head", "lead")
EXECUTIVE_KEYWORDS = ("chief", "director")


def title_of(position: Optional[Dict[str, Any]]) -> str:
    return ((position or {}).get("title") or "").lower()


def has_keyword(title: str, keywords: Iterable[str]) -> bool:
    return any(k in title for k in keywords)


def is_management(position: Dict[str, Any]) -> bool:
    return has_keyword(title_of(position), MANAGEMENT_KEYWORDS)


class OrgGraph:
    def __init__(self, positions: Iterable[Dict[str, Any]], assignments: Iterable[Dict[str, Any]] = ()) -> None:
        self.positions: Dict[str, Dict[str, Any]] = {}
        for p in positions:
            self.positions[id_str(p)] = p

        self.children: Dict[str, List[str]] = defaultdict(list)
        for pid, p in self.positions.items():
            parent = id_str(p.get("reports_to_position_id"))
            if parent:
                self.children[parent].append(pid)

        # First active assignment per position.
        self.assignment_by_position: Dict[str, Dict[str, Any]] = {}
        for a in assignments:
            pid = id_str(a.get("position_id"))
            if pid and pid not in self.assignment_by_position:
                self.assignment_by_position[pid] = a

    def __len__(self) -> int:
        return len(self.positions)

    def direct_reports(self, position_id: str) -> List[str]:
        return self.children.get(position_id, [])

    def report_count(self, position_id: str) -> int:
        return len(self.children.get(position_id, []))

    def is_filled(self, position_id: str) -> bool:
        return position_id in self.assignment_by_position

    def holder_id(self, position_id: str) -> str:
        return id_str((self.assignment_by_position.get(position_id) or {}).get("employee_profile_id"))

    def filled_report_count(self, position_id: str) -> int:
        return sum(1 for child in self.direct_reports(position_id) if self.is_filled(child))

    def roots(self) -> List[str]:
        """Positions without a manager inside this graph."""

        out = []
        for pid, p in self.positions.items():
            parent = id_str(p.get("reports_to_position_id"))
            if not parent or parent not in self.positions:
                out.append(pid)
        return out

    def depths(self) -> Dict[str, int]:
        """Depth of every position reachable from a root (roots are depth 1)."""

        depth: Dict[str, int] = {}
        queue = deque((root, 1) for root in self.roots())
        while queue:
            pid, d = queue.popleft()
            if pid in depth:
                continue
            depth[pid] = d
            for child in self.direct_reports(pid):
                if child not in depth:
                    queue.append((child, d + 1))
        return depth

    def depth_stats(self) -> Tuple[int, float]:
        values = list(self.depths().values())
        if not values:
            return 0, 0.0
        return max(values), round1(sum(values) / len(values))
