"""File-backed board documents: narrative doc, changelog and memory log."""

from __future__ import annotations

import re
import threading
from datetime import UTC, datetime
from pathlib import Path

from dzzenos_api.core.exceptions import ValidationFailed
from dzzenos_api.core.logging import get_logger

logger = get_logger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class DocsStore:
    """Markdown files under ``root``, one set per board.

    Layout::

        docs/boards/<board>.md             narrative doc
        docs/boards/<board>/changelog.md   changelog
        memory/boards/<board>.md           memory log
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._lock = threading.Lock()

    def _board_id(self, board_id: str) -> str:
        if not _SAFE_ID.match(board_id or ""):
            raise ValidationFailed("Invalid boardId")
        return board_id

    def board_doc_path(self, board_id: str) -> Path:
        return self.root / "docs" / "boards" / f"{self._board_id(board_id)}.md"

    def changelog_path(self, board_id: str) -> Path:
        return self.root / "docs" / "boards" / self._board_id(board_id) / "changelog.md"

    def memory_path(self, board_id: str) -> Path:
        return self.root / "memory" / "boards" / f"{self._board_id(board_id)}.md"

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""

    def _append(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(content)

    def read_board_doc(self, board_id: str) -> str:
        return self._read(self.board_doc_path(board_id))

    def read_changelog(self, board_id: str) -> str:
        return self._read(self.changelog_path(board_id))

    def read_memory(self, board_id: str) -> str:
        return self._read(self.memory_path(board_id))

    def append_board_summary(
        self,
        board_id: str,
        title: str,
        summary: str,
        now: datetime | None = None,
    ) -> None:
        """Append a completed-task summary to all three board documents."""
        ts = (now or datetime.now(UTC)).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
        change_entry = f"- {ts} — {title}\n{summary}\n\n"
        with self._lock:
            self._append(self.board_doc_path(board_id), f"## {title}\n\n{summary}\n\n")
            self._append(self.changelog_path(board_id), change_entry)
            self._append(self.memory_path(board_id), change_entry)
        logger.info("Board summary appended", data={"board_id": board_id, "title": title})
