"""
Branch Matcher - Deterministic branch selection for condition nodes.

Every rule is first-match-wins in branch array order. Nothing here calls an
LLM; intent detection happens in the side-effect backend and its answer is
matched like any other value.
"""
import re
import logging
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Optional, List, Iterable, Tuple

from ..models.flow import Branch, ConditionNodeConfig, FlowEdge

logger = logging.getLogger(__name__)

TIME_RANGE_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})\s*$")
TRUTHY_WORDS = ("true", "sim", "yes", "s", "y", "1")
FALSY_WORDS = ("false", "não", "nao", "no", "n", "0")


@dataclass
class BranchMatch:
    """Selected branch plus why it was selected"""
    branch: Branch
    index: int
    reason: str


class BranchMatcher:
    """
    Selects the outgoing branch of a condition node.

    Rules:
    - keyword: per-branch keyword lists, then the legacy global keyword list,
      then the first catch-all branch (empty keyword list)
    - variable / tag / intent: case-insensitive equality against branch values,
      then the first branch with an empty value
    - time: branch values shaped ``HH:MM-HH:MM``, or the node ``timeRange``
    """

    # =========================================================================
    # KEYWORD
    # =========================================================================

    def match_keyword(self, config: ConditionNodeConfig, text: str) -> Optional[BranchMatch]:
        branches = config.branches
        message = self._normalize_string(text)

        for index, branch in enumerate(branches):
            keyword = self._find_keyword(branch.keywords, message)
            if keyword:
                return BranchMatch(branch, index, f"keyword '{keyword}'")

        legacy_target = self._legacy_target(branches) if config.keywords else None
        if legacy_target is not None:
            keyword = self._find_keyword(config.keywords, message)
            if keyword:
                index, branch = legacy_target
                return BranchMatch(branch, index, f"global keyword '{keyword}'")

        for index, branch in enumerate(branches):
            if branch.is_default:
                return BranchMatch(branch, index, "default")

        return None

    @staticmethod
    def _find_keyword(keywords: Iterable[str], message: str) -> Optional[str]:
        """First keyword contained in the normalized message; blank keywords never match"""
        for keyword in keywords:
            normalized = BranchMatcher._normalize_string(keyword)
            if normalized and normalized in message:
                return keyword
        return None

    @staticmethod
    def _legacy_target(branches: List[Branch]) -> Optional[Tuple[int, Branch]]:
        for index, branch in enumerate(branches):
            if branch.value == "yes":
                return index, branch
        return (0, branches[0]) if branches else None

    # =========================================================================
    # VALUE (variable / tag / intent)
    # =========================================================================

    def match_value(self, branches: List[Branch], actual: Any) -> Optional[BranchMatch]:
        """Match a single resolved value (or any element of a list) against branch values"""
        candidates = list(actual) if isinstance(actual, (list, tuple, set)) else [actual]

        for index, branch in enumerate(branches):
            if not branch.value:
                continue
            if any(self._safe_equals(candidate, branch.value) for candidate in candidates):
                return BranchMatch(branch, index, f"value '{branch.value}'")

        return self._first_empty_value(branches)

    def match_intent(self, branches: List[Branch], intent: Optional[str], detected: bool) -> Optional[BranchMatch]:
        """
        Branches carrying values are matched against the detected intent name;
        branches without any value fall back to yes (first) / no (second).
        """
        if any(b.value for b in branches):
            return self.match_value(branches, intent if detected else None)
        index = 0 if detected else 1
        if index < len(branches):
            return BranchMatch(branches[index], index, "intent detected" if detected else "intent not detected")
        return None

    @staticmethod
    def _first_empty_value(branches: List[Branch]) -> Optional[BranchMatch]:
        for index, branch in enumerate(branches):
            if not branch.value:
                return BranchMatch(branch, index, "default")
        return None

    # =========================================================================
    # TIME
    # =========================================================================

    def match_time(self, config: ConditionNodeConfig, now: datetime) -> Optional[BranchMatch]:
        branches = config.branches
        current = now.time()
        has_ranges = False

        for index, branch in enumerate(branches):
            parsed = self.parse_time_range(branch.value)
            if parsed is None:
                continue
            has_ranges = True
            if self._in_range(current, *parsed):
                return BranchMatch(branch, index, f"time in {branch.value}")

        if has_ranges:
            for index, branch in enumerate(branches):
                if self.parse_time_range(branch.value) is None:
                    return BranchMatch(branch, index, "default")
            return None

        time_range = config.time_range
        start = self._parse_clock(time_range.start if time_range else "09:00") or time(9, 0)
        end = self._parse_clock(time_range.end if time_range else "18:00") or time(18, 0)
        index = 0 if self._in_range(current, start, end) else 1
        if index < len(branches):
            return BranchMatch(branches[index], index, "inside time range" if index == 0 else "outside time range")
        return None

    @staticmethod
    def parse_time_range(value: Optional[str]) -> Optional[Tuple[time, time]]:
        if not value:
            return None
        match = TIME_RANGE_PATTERN.match(value)
        if not match:
            return None
        h1, m1, h2, m2 = (int(g) for g in match.groups())
        if h1 > 23 or h2 > 23 or m1 > 59 or m2 > 59:
            return None
        return time(h1, m1), time(h2, m2)

    @staticmethod
    def _parse_clock(value: Optional[str]) -> Optional[time]:
        if not value:
            return None
        parts = value.strip().split(":")
        try:
            hour = int(parts[0])
            minute = int(parts[1]) if len(parts) > 1 else 0
            return time(hour, minute)
        except ValueError:
            return None

    @staticmethod
    def _in_range(current: time, start: time, end: time) -> bool:
        """Start inclusive, end exclusive; ranges may wrap midnight"""
        if start <= end:
            return start <= current < end
        return current >= start or current < end

    # =========================================================================
    # EDGES
    # =========================================================================

    @staticmethod
    def find_branch_edge(edges: Iterable[FlowEdge], node_id: str, match: BranchMatch) -> Optional[FlowEdge]:
        """
        Edge leaving ``node_id`` for the matched branch.

        Accepted handle encodings: ``branch-<id>``, ``<id>``, ``source-<index>``.
        An edge without a handle is the unconditional fallback.
        """
        handles = {
            f"branch-{match.branch.id}",
            match.branch.id,
            f"source-{match.index}",
        }
        fallback = None
        for edge in edges:
            if edge.source != node_id:
                continue
            if edge.source_handle in handles:
                return edge
            if not edge.source_handle and fallback is None:
                fallback = edge
        return fallback

    # =========================================================================
    # COERCION HELPERS
    # =========================================================================

    @staticmethod
    def _safe_equals(actual: Any, expected: Any) -> bool:
        """
        Compare a session variable against a branch value.

        Booleans compare against "sim"/"true" style strings, numeric strings
        compare numerically and everything else compares case-insensitively.
        """
        if actual is None or expected is None:
            return actual is expected

        if isinstance(actual, bool) or isinstance(expected, bool):
            return BranchMatcher._coerce_to_bool(actual) == BranchMatcher._coerce_to_bool(expected)

        numbers = (BranchMatcher._coerce_to_number(actual), BranchMatcher._coerce_to_number(expected))
        if None not in numbers:
            return numbers[0] == numbers[1]

        return BranchMatcher._normalize_string(actual) == BranchMatcher._normalize_string(expected)

    @staticmethod
    def _coerce_to_bool(value: Any) -> Optional[bool]:
        if isinstance(value, bool):
            return value
        normalized = BranchMatcher._normalize_string(value)
        if normalized in TRUTHY_WORDS:
            return True
        if normalized in FALSY_WORDS:
            return False
        return None

    @staticmethod
    def _coerce_to_number(value: Any) -> Optional[float]:
        # bool is an int subclass; "true" must not equal 1.0 here
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            return None
        try:
            return float(value)
        except ValueError:
            return None

    @staticmethod
    def _normalize_string(value: Any) -> str:
        return "" if value is None else str(value).strip().lower()


matcher = BranchMatcher()
