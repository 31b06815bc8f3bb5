from __future__ import annotations

import time
from threading import Lock

from core.state import InterviewStatus

# Sessions that never reached the interview; nothing finalizes them.
_IDLE_STATUSES = (InterviewStatus.COLLECTING_INFO, InterviewStatus.CONFIRMING)


class SessionRegistry:
    def __init__(self):
        self._lock = Lock()
        self._sessions: dict[str, dict] = {}

    def register(self, session_id: str, controller) -> None:
        with self._lock:
            self._sessions[session_id] = {
                "controller": controller,
                "created_at": time.time(),
                "updated_at": time.time(),
                "active": True,
            }

    def touch(self, session_id: str) -> None:
        with self._lock:
            if session_id in self._sessions:
                self._sessions[session_id]["updated_at"] = time.time()

    def mark_inactive(self, session_id: str) -> None:
        with self._lock:
            if session_id in self._sessions:
                self._sessions[session_id]["active"] = False
                self._sessions[session_id]["updated_at"] = time.time()

    def get(self, session_id: str) -> dict | None:
        with self._lock:
            item = self._sessions.get(session_id)
            return dict(item) if item else None

    def get_controller(self, session_id: str):
        item = self.get(session_id)
        return item["controller"] if item else None

    def controllers(self) -> list:
        with self._lock:
            return [item["controller"] for item in self._sessions.values()]

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for item in self._sessions.values() if item.get("active"))

    def cleanup_inactive(self, ttl_sec: float, evicted: list | None = None) -> int:
        """Drop finished sessions and sessions abandoned before the interview began.

        Controllers of abandoned sessions are appended to ``evicted`` so the caller can stop them.
        """
        now_ts = time.time()
        cutoff = now_ts - max(30.0, float(ttl_sec or 900.0))
        removed = 0
        with self._lock:
            for session_id, data in list(self._sessions.items()):
                updated_at = float((data or {}).get("updated_at") or 0.0)
                if updated_at > cutoff:
                    continue
                controller = (data or {}).get("controller")
                if bool((data or {}).get("active", False)):
                    if getattr(controller, "status", None) not in _IDLE_STATUSES:
                        continue
                    if evicted is not None:
                        evicted.append(controller)
                self._sessions.pop(session_id, None)
                removed += 1
        return removed

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


session_registry = SessionRegistry()
