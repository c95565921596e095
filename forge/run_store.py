from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Mapping

LOG_FILENAME = "run.log"
REPORT_FILENAME = "report.json"


@dataclass
class RunRecorder:
    """Artifacts of one CLI run, kept under `<artifacts_dir>/<run_id>/`.

    The run log collects one line per event, tagged with the component that
    emitted it (`cli`, `prompt_executor`, `model_backend`). The report is the
    machine-readable summary written once the run is over.
    """

    root: Path
    run_id: str
    command: str
    started_at: datetime

    @classmethod
    def start(
        cls,
        artifacts_dir: Path,
        command: str,
        now: Callable[[], datetime] = datetime.now,
    ) -> "RunRecorder":
        started_at = now()
        run_id = started_at.strftime("%Y-%m-%d_%H%M%S")
        return cls(root=Path(artifacts_dir) / run_id, run_id=run_id, command=command, started_at=started_at)

    @property
    def log_path(self) -> Path:
        return self.root / LOG_FILENAME

    @property
    def report_path(self) -> Path:
        return self.root / REPORT_FILENAME

    def log(self, message: str, *, level: str = "INFO", component: str = "cli") -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        with self.log_path.open("a", encoding="utf-8") as f:
            f.write(f"{stamp} | {level.upper():<7} | {component:<15} | {message}\n")

    def event_logger(self, component: str) -> Callable[[str], None]:
        """Callable for collaborators that accept an `event_logger`."""

        def _log(message: str) -> None:
            self.log(message, component=component)

        return _log

    def write_report(self, body: Mapping[str, Any]) -> Path:
        """Write `report.json` headed by the run identity.

        Values that are not strict JSON (objects, nan, inf) raise instead of
        producing an unreadable report.
        """

        payload = {
            "run_id": self.run_id,
            "command": self.command,
            "created_at": self.started_at.isoformat(timespec="seconds"),
            **body,
        }
        text = json.dumps(payload, indent=2, allow_nan=False)
        self.root.mkdir(parents=True, exist_ok=True)
        self.report_path.write_text(text + "\n", encoding="utf-8")
        return self.report_path
