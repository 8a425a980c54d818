# wiki_harvest/crawler/robots.py
"""
Parser and checker for robots.txt rules (RFC 9309 subset: groups, Allow/Disallow
with ``*``/``$`` wildcards, longest match wins, Crawl-delay).
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

__all__ = ("RobotsTxtRules",)

_WILDCARD_RE = re.compile(r"[*$]")


@dataclass(slots=True)
class _Group:
    agents: List[str] = field(default_factory=list)
    rules: List[Tuple[bool, str]] = field(default_factory=list)
    crawl_delay: Optional[float] = None

    @property
    def has_body(self) -> bool:
        return bool(self.rules) or self.crawl_delay is not None


class RobotsTxtRules:
    """Parsed robots.txt. An empty ``Disallow:`` allows everything."""

    def __init__(self, text: str) -> None:
        self._groups: List[_Group] = []
        self._patterns: Dict[str, re.Pattern[str]] = {}
        self._parse(text)

    def can_fetch(self, user_agent: str, path: str) -> bool:
        """Return True if *user_agent* may fetch *path* (path plus optional query)."""
        group = self._match_group(user_agent)
        if group is None:
            return True
        best_len = -1
        verdict = True
        for allow, pattern in group.rules:
            if not self._matches(pattern, path):
                continue
            length = len(_WILDCARD_RE.sub("", pattern))
            # on equal length Allow wins
            if length > best_len or (length == best_len and allow):
                best_len = length
                verdict = allow
        return verdict

    def crawl_delay(self, user_agent: str) -> Optional[float]:
        group = self._match_group(user_agent)
        return None if group is None else group.crawl_delay

    def _parse(self, text: str) -> None:
        current: Optional[_Group] = None
        for raw in text.splitlines():
            line = raw.split("#", 1)[0].strip()
            if not line:
                continue
            key, _, val = line.partition(":")
            key = key.strip().lower()
            val = val.strip()
            if key == "user-agent":
                # consecutive User-agent lines share one group
                if current is None or current.has_body:
                    current = _Group()
                    self._groups.append(current)
                current.agents.append(val.lower())
                continue
            if key not in ("allow", "disallow", "crawl-delay"):
                continue
            if current is None:
                current = _Group(agents=["*"])
                self._groups.append(current)
            if key == "crawl-delay":
                try:
                    current.crawl_delay = max(0.0, float(val))
                except ValueError:
                    continue
            elif val:
                current.rules.append((key == "allow", val))

    def _match_group(self, user_agent: str) -> Optional[_Group]:
        ua = user_agent.lower()
        for group in self._groups:
            if any(agent != "*" and ua.startswith(agent) for agent in group.agents):
                return group
        for group in self._groups:
            if "*" in group.agents:
                return group
        return None

    def _matches(self, pattern: str, path: str) -> bool:
        compiled = self._patterns.get(pattern)
        if compiled is None:
            anchored = pattern.endswith("$")
            body = re.escape(pattern[:-1] if anchored else pattern).replace(r"\*", ".*")
            compiled = re.compile("^" + body + ("$" if anchored else ""))
            self._patterns[pattern] = compiled
        return compiled.match(path) is not None
