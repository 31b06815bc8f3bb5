import json
import logging
from pathlib import Path
from threading import Lock
from typing import Any

from core.config import INTERVIEW_STORE_PATH

logger = logging.getLogger("app.db.interview_store")


class JsonInterviewStore:
    """File-backed record of interviews and their final reports.

    Implements the session listener hooks so a controller can persist as it goes.
    """

    def __init__(self, path: Path | str = INTERVIEW_STORE_PATH):
        self._lock = Lock()
        self._path = Path(path)
        self._records: dict[str, dict[str, Any]] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> None:
        if not self._path.exists():
            self._records = {}
            return
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("interview store unreadable, starting empty | path=%s err=%s", self._path, exc)
            self._records = {}
            return
        if isinstance(payload, dict):
            self._records = {
                str(key): value
                for key, value in payload.items()
                if isinstance(key, str) and isinstance(value, dict)
            }
        else:
            self._records = {}

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_suffix(".tmp")
        temp_path.write_text(json.dumps(self._records, ensure_ascii=False, sort_keys=True), encoding="utf-8")
        temp_path.replace(self._path)

    def save_interview(self, interview_id: str, interview: dict[str, Any], report: dict[str, Any] | None = None) -> None:
        iid = str(interview_id or "").strip()
        if not iid:
            return
        with self._lock:
            record = dict(self._records.get(iid) or {})
            record["interview"] = dict(interview or {})
            if report is not None:
                record["report"] = dict(report)
            self._records[iid] = record
            self._persist()

    def get_interview(self, interview_id: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._records.get(str(interview_id or "").strip())
            return dict(record["interview"]) if record and isinstance(record.get("interview"), dict) else None

    def get_report(self, interview_id: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._records.get(str(interview_id or "").strip())
            return dict(record["report"]) if record and isinstance(record.get("report"), dict) else None

    def list_completed(self, limit: int = 50) -> list[dict[str, Any]]:
        """Final reports of finished interviews, newest first."""
        capped = max(1, min(int(limit or 50), 200))
        with self._lock:
            rows = [dict(record["report"]) for record in self._records.values() if isinstance(record.get("report"), dict)]
        rows.sort(key=lambda item: float(item.get("ended_at") or item.get("started_at") or 0.0), reverse=True)
        return rows[:capped]

    # session listener hooks

    async def on_response_recorded(self, interview, response) -> None:
        self.save_interview(interview.id, interview.to_dict())

    async def on_session_finalized(self, interview, report) -> None:
        self.save_interview(interview.id, interview.to_dict(), report.to_dict() if report is not None else None)
