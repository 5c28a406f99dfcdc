"""Audit store: exemption list and per-run result log.

Persisted as one JSON document::

    {
      "version": 1,
      "exemptions": ["OS-004"],
      "runs": {
        "<run id>": {
          "timestamp": "2026-10-19T08:00:00+00:00",
          "bank": "C:/banks/windows.json",
          "results": {"OS-001": {"check_pass": false, "probe_succeeded": true}},
          "remediations": {"OS-001": {"secured": true, "timestamp": "..."}}
        }
      }
    }
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from stewart.checks.models import CheckResult
from stewart.core.config import Cfg
from stewart.core.logging import LOG
from stewart.exceptions import AuditError, FileError, ValidationError
from stewart.io.file_ops import FO

STORE_VERSION = 1


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditStore:
    """
    JSON backed exemption list and run log.

    Every mutation is saved atomically before the call returns.

    Thread-safe: Yes
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else Cfg.STORE_FILE
        self._lock = threading.RLock()
        self._exemptions: List[str] = []
        self._runs: Dict[str, Dict[str, Any]] = {}
        self._load()

    # ----------------------------------------------------------------------- load
    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(FO.read(self.path) or "{}")
        except (FileError, json.JSONDecodeError) as exc:
            raise AuditError(f"Audit store is unreadable: {exc}", {"path": self.path}) from exc
        if not isinstance(data, dict):
            raise AuditError("Audit store is not a JSON object", {"path": self.path})

        self._exemptions = [str(item) for item in data.get("exemptions", []) if str(item).strip()]
        runs = data.get("runs", {})
        self._runs = {str(k): v for k, v in runs.items() if isinstance(v, dict)} if isinstance(runs, dict) else {}

    # ----------------------------------------------------------------------- save
    def _save(self) -> None:
        payload = {
            "version": STORE_VERSION,
            "exemptions": self._exemptions,
            "runs": self._runs,
        }
        with FO.atomic(self.path) as handle:
            json.dump(payload, handle, indent=2, ensure_ascii=False)

    # ----------------------------------------------------------------------- exemptions
    def exempted_ids(self) -> Set[str]:
        with self._lock:
            return set(self._exemptions)

    def add_exemption(self, check_id: str) -> bool:
        """Exempt a check ID from future runs. Returns False if it was already exempt."""
        check_id = (check_id or "").strip()
        if not check_id:
            raise ValidationError("Exemption requires a check ID")
        with self._lock:
            if check_id in self._exemptions:
                return False
            self._exemptions.append(check_id)
            self._save()
        LOG.i(f"Exempted {check_id}")
        return True

    def remove_exemption(self, check_id: str) -> bool:
        with self._lock:
            if check_id not in self._exemptions:
                return False
            self._exemptions.remove(check_id)
            self._save()
        LOG.i(f"Removed exemption {check_id}")
        return True

    # ----------------------------------------------------------------------- runs
    def record_run(self, run_id: str, timestamp: Optional[str] = None, bank_path: Union[str, Path] = "") -> None:
        with self._lock:
            if run_id in self._runs:
                raise AuditError("Run already recorded", {"run": run_id})
            self._runs[run_id] = {
                "timestamp": timestamp or _now(),
                "bank": str(bank_path),
                "results": {},
                "remediations": {},
            }
            self._save()

    def _run(self, run_id: str) -> Dict[str, Any]:
        run = self._runs.get(run_id)
        if run is None:
            raise AuditError("Unknown run", {"run": run_id})
        return run

    def record_result(self, run_id: str, check_id: str, check_pass: bool, probe_succeeded: bool) -> None:
        with self._lock:
            self._run(run_id).setdefault("results", {})[check_id] = {
                "check_pass": bool(check_pass),
                "probe_succeeded": bool(probe_succeeded),
            }
            self._save()

    def record_results(self, run_id: str, results: Iterable[CheckResult]) -> None:
        """Record a whole batch with a single save."""
        with self._lock:
            entries = self._run(run_id).setdefault("results", {})
            for result in results:
                entries[result.id] = {
                    "check_pass": result.check_pass,
                    "probe_succeeded": result.probe_succeeded,
                }
            self._save()

    def record_remediation(self, run_id: str, check_id: str, secured: bool) -> None:
        with self._lock:
            self._run(run_id).setdefault("remediations", {})[check_id] = {
                "secured": bool(secured),
                "timestamp": _now(),
            }
            self._save()

    def failed_ids(self, run_id: str) -> List[str]:
        """IDs whose recorded result was a finding (or an unsuccessful probe)."""
        with self._lock:
            results = self._run(run_id).get("results", {})
            return sorted(cid for cid, entry in results.items() if not entry.get("check_pass", False))

    def run(self, run_id: str) -> Dict[str, Any]:
        with self._lock:
            return json.loads(json.dumps(self._run(run_id)))

    def runs(self) -> Dict[str, Dict[str, Any]]:
        """Run ID -> timestamp and bank path, oldest first."""
        with self._lock:
            ordered = sorted(self._runs.items(), key=lambda kv: kv[1].get("timestamp", ""))
            return {rid: {"timestamp": run.get("timestamp"), "bank": run.get("bank")} for rid, run in ordered}
