"""
Results ledger — one JSON line per dispatched entry.

Written to ``<logs>/results-<run_id>.ndjson`` while the run is in
progress, so a crashed run still leaves the outcomes it reached.
The file is append-only; lines are never rewritten.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from devsetup.core.models.outcome import Outcome
from devsetup.core.models.run import RunContext

logger = logging.getLogger(__name__)

RESULTS_PREFIX = "results"
RESULTS_SUFFIX = ".ndjson"


class ResultsWriter:
    """Append-only writer for per-entry outcomes."""

    def __init__(self, path: Path, run_id: str = ""):
        self._path = path
        self._run_id = run_id

    @classmethod
    def for_run(cls, ctx: RunContext) -> ResultsWriter:
        return cls(ctx.artifact_path(RESULTS_PREFIX, RESULTS_SUFFIX), run_id=ctx.run_id)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, outcome: Outcome) -> None:
        """Append one outcome. I/O errors are logged, never raised."""
        self._path.parent.mkdir(parents=True, exist_ok=True)

        data = {"run_id": self._run_id, **outcome.model_dump(mode="json")}
        line = json.dumps(data, ensure_ascii=False) + "\n"

        try:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Result written: %s/%s", outcome.section, outcome.entry)
        except OSError as e:
            logger.error("Failed to write result for %s: %s", outcome.entry, e)

    def read_all(self) -> list[Outcome]:
        """All outcomes in the ledger, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        outcomes = []
        with self._path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                    data.pop("run_id", None)
                    outcomes.append(Outcome.model_validate(data))
                except ValueError as e:
                    logger.warning("Skipping corrupt result at line %d: %s", line_num, e)
        return outcomes
