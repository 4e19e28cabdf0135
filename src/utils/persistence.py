"""
Flashcard persistence backends.

FlashcardPersistence is the async boundary the card store and session
recorder talk to. Two implementations are provided:
- InMemoryPersistence: process-local dicts (tests, local-only runs)
- JsonFilePersistence: one JSON file per set and per session under data/

Backends raise their native errors on failed writes; the session recorder
translates them into PersistenceWriteFailed.
"""

from __future__ import annotations

import asyncio
import json
import os
import threading
import uuid
from abc import ABC, abstractmethod
from copy import deepcopy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    from ..config import config
    from .errors import NotFound
except ImportError:
    from src.config import config
    from src.utils.errors import NotFound


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ordered_cards(cards: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # Stable sort keeps insertion order for equal timestamps
    return sorted(cards, key=lambda c: c.get("created_at", ""))


class FlashcardPersistence(ABC):
    """Async storage interface for sets, cards, sessions and high scores."""

    # ---- card store ----

    @abstractmethod
    async def get_cards_for_set(self, set_id: str) -> List[Dict[str, Any]]:
        """
        Cards of a set ordered by creation time.

        Raises:
            NotFound: If the set does not exist
        """

    @abstractmethod
    async def get_set_metadata(self, set_id: str) -> Dict[str, Any]:
        """
        Set row (id, user_id, title, prompt, created_at, high_score).

        Raises:
            NotFound: If the set does not exist
        """

    @abstractmethod
    async def save_set(self, set_data: Dict[str, Any], cards: List[Dict[str, Any]]) -> str:
        """Store a new set with its cards; returns the set id."""

    @abstractmethod
    async def list_sets(self, user_id: str) -> List[Dict[str, Any]]:
        """Sets owned by a user, newest first."""

    @abstractmethod
    async def count_cards(self, set_id: str) -> int:
        """Number of stored cards, 0 for an unknown set."""

    @abstractmethod
    async def delete_set(self, set_id: str) -> None:
        """Remove a set and its cards."""

    # ---- sessions and scores ----

    @abstractmethod
    async def insert_session(self, record: Dict[str, Any]) -> str:
        """Insert a session row; returns its id."""

    @abstractmethod
    async def update_session(self, session_id: str, fields: Dict[str, Any]) -> None:
        """
        Upsert progress fields of a session.

        Raises:
            NotFound: If the session does not exist
        """

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Session row, or None if not found."""

    @abstractmethod
    async def update_set_high_score(
        self, set_id: str, user_id: str, new_high_score: int, updated_at: str
    ) -> None:
        """
        Raise the stored high score of a set owned by user_id.

        Raises:
            NotFound: If the set does not exist for that user
        """

    @abstractmethod
    async def query_best_completed_session(
        self, user_id: str, set_id: str
    ) -> Optional[Dict[str, Any]]:
        """Completed session of user_id with the most correct answers, or None."""


class InMemoryPersistence(FlashcardPersistence):
    """Dictionary-backed persistence. Rows are copied in and out."""

    def __init__(self):
        self.sets: Dict[str, Dict[str, Any]] = {}
        self.cards: Dict[str, List[Dict[str, Any]]] = {}
        self.sessions: Dict[str, Dict[str, Any]] = {}

    def _require_set(self, set_id: str) -> Dict[str, Any]:
        if set_id not in self.sets:
            raise NotFound("set", set_id)
        return self.sets[set_id]

    async def get_cards_for_set(self, set_id: str) -> List[Dict[str, Any]]:
        self._require_set(set_id)
        return deepcopy(_ordered_cards(self.cards.get(set_id, [])))

    async def get_set_metadata(self, set_id: str) -> Dict[str, Any]:
        return deepcopy(self._require_set(set_id))

    async def save_set(self, set_data: Dict[str, Any], cards: List[Dict[str, Any]]) -> str:
        row = deepcopy(set_data)
        row.setdefault("id", f"set-{uuid.uuid4()}")
        row.setdefault("created_at", _now())
        row.setdefault("high_score", 0)
        self.sets[row["id"]] = row
        self.cards[row["id"]] = [
            {**deepcopy(card), "set_id": row["id"]} for card in cards
        ]
        return row["id"]

    async def list_sets(self, user_id: str) -> List[Dict[str, Any]]:
        rows = [deepcopy(s) for s in self.sets.values() if s.get("user_id") == user_id]
        rows.sort(key=lambda s: s.get("created_at", ""), reverse=True)
        return rows

    async def count_cards(self, set_id: str) -> int:
        return len(self.cards.get(set_id, []))

    async def delete_set(self, set_id: str) -> None:
        self._require_set(set_id)
        del self.sets[set_id]
        self.cards.pop(set_id, None)

    async def insert_session(self, record: Dict[str, Any]) -> str:
        row = deepcopy(record)
        row.setdefault("session_id", f"qs-{uuid.uuid4()}")
        self.sessions[row["session_id"]] = row
        return row["session_id"]

    async def update_session(self, session_id: str, fields: Dict[str, Any]) -> None:
        if session_id not in self.sessions:
            raise NotFound("session", session_id)
        self.sessions[session_id].update(deepcopy(fields))

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        row = self.sessions.get(session_id)
        return deepcopy(row) if row is not None else None

    async def update_set_high_score(
        self, set_id: str, user_id: str, new_high_score: int, updated_at: str
    ) -> None:
        row = self._require_set(set_id)
        if row.get("user_id") != user_id:
            raise NotFound("set", set_id)
        row["high_score"] = max(int(row.get("high_score") or 0), new_high_score)
        row["updated_at"] = updated_at

    async def query_best_completed_session(
        self, user_id: str, set_id: str
    ) -> Optional[Dict[str, Any]]:
        completed = [
            s for s in self.sessions.values()
            if s.get("user_id") == user_id and s.get("set_id") == set_id and s.get("completed")
        ]
        if not completed:
            return None
        best = max(completed, key=lambda s: s.get("correct_answers", 0))
        return {"correct_answers": best.get("correct_answers", 0)}


class JsonFilePersistence(FlashcardPersistence):
    """
    File-backed persistence.

    Features:
    - One file per set (metadata + cards) in sets_dir
    - One file per session in sessions_dir
    - Atomic writes (temp file + os.replace)
    - Blocking file I/O runs in a worker thread
    """

    def __init__(self, sets_dir: Path | str = None, sessions_dir: Path | str = None):
        """
        Initialize persistence manager.

        Args:
            sets_dir: Directory for set files (default: config.paths.sets_dir)
            sessions_dir: Directory for session files (default: config.paths.sessions_dir)
        """
        self.sets_dir = Path(sets_dir) if sets_dir else config.paths.sets_dir
        self.sessions_dir = Path(sessions_dir) if sessions_dir else config.paths.sessions_dir
        self.sets_dir.mkdir(parents=True, exist_ok=True)
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    # ---- file helpers (blocking) ----

    def _set_path(self, set_id: str) -> Path:
        return self.sets_dir / f"{set_id}.json"

    def _session_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}.json"

    @staticmethod
    def _read(filepath: Path) -> Optional[Dict[str, Any]]:
        if not filepath.exists():
            return None
        with open(filepath, "r", encoding="utf-8") as f:
            return json.load(f)

    @staticmethod
    def _write(filepath: Path, data: Dict[str, Any]) -> None:
        temp_filepath = filepath.with_suffix(".json.tmp")
        try:
            with open(temp_filepath, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(temp_filepath, filepath)
        except Exception:
            if temp_filepath.exists():
                temp_filepath.unlink()
            raise

    def _read_set_file(self, set_id: str) -> Dict[str, Any]:
        data = self._read(self._set_path(set_id))
        if data is None:
            raise NotFound("set", set_id)
        return data

    def _iter_set_files(self) -> List[Dict[str, Any]]:
        rows = []
        for filepath in self.sets_dir.glob("*.json"):
            rows.append(self._read(filepath))
        return [row for row in rows if row is not None]

    def _iter_session_files(self) -> List[Dict[str, Any]]:
        rows = []
        for filepath in self.sessions_dir.glob("qs-*.json"):
            rows.append(self._read(filepath))
        return [row for row in rows if row is not None]

    # ---- card store ----

    async def get_cards_for_set(self, set_id: str) -> List[Dict[str, Any]]:
        data = await asyncio.to_thread(self._read_set_file, set_id)
        return _ordered_cards(data.get("cards", []))

    async def get_set_metadata(self, set_id: str) -> Dict[str, Any]:
        data = await asyncio.to_thread(self._read_set_file, set_id)
        return data["set"]

    async def save_set(self, set_data: Dict[str, Any], cards: List[Dict[str, Any]]) -> str:
        row = dict(set_data)
        row.setdefault("id", f"set-{uuid.uuid4()}")
        row.setdefault("created_at", _now())
        row.setdefault("high_score", 0)
        payload = {
            "set": row,
            "cards": [{**card, "set_id": row["id"]} for card in cards],
        }

        def write():
            with self._lock:
                self._write(self._set_path(row["id"]), payload)

        await asyncio.to_thread(write)
        return row["id"]

    async def list_sets(self, user_id: str) -> List[Dict[str, Any]]:
        files = await asyncio.to_thread(self._iter_set_files)
        rows = [f["set"] for f in files if f["set"].get("user_id") == user_id]
        rows.sort(key=lambda s: s.get("created_at", ""), reverse=True)
        return rows

    async def count_cards(self, set_id: str) -> int:
        data = await asyncio.to_thread(self._read, self._set_path(set_id))
        return len(data.get("cards", [])) if data else 0

    async def delete_set(self, set_id: str) -> None:
        def remove():
            with self._lock:
                filepath = self._set_path(set_id)
                if not filepath.exists():
                    raise NotFound("set", set_id)
                filepath.unlink()

        await asyncio.to_thread(remove)

    # ---- sessions and scores ----

    async def insert_session(self, record: Dict[str, Any]) -> str:
        row = dict(record)
        row.setdefault("session_id", f"qs-{uuid.uuid4()}")

        def write():
            with self._lock:
                self._write(self._session_path(row["session_id"]), row)

        await asyncio.to_thread(write)
        return row["session_id"]

    async def update_session(self, session_id: str, fields: Dict[str, Any]) -> None:
        def update():
            with self._lock:
                filepath = self._session_path(session_id)
                row = self._read(filepath)
                if row is None:
                    raise NotFound("session", session_id)
                row.update(fields)
                self._write(filepath, row)

        await asyncio.to_thread(update)

    async def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._read, self._session_path(session_id))

    async def update_set_high_score(
        self, set_id: str, user_id: str, new_high_score: int, updated_at: str
    ) -> None:
        def update():
            with self._lock:
                data = self._read_set_file(set_id)
                row = data["set"]
                if row.get("user_id") != user_id:
                    raise NotFound("set", set_id)
                row["high_score"] = max(int(row.get("high_score") or 0), new_high_score)
                row["updated_at"] = updated_at
                self._write(self._set_path(set_id), data)

        await asyncio.to_thread(update)

    async def query_best_completed_session(
        self, user_id: str, set_id: str
    ) -> Optional[Dict[str, Any]]:
        rows = await asyncio.to_thread(self._iter_session_files)
        completed = [
            s for s in rows
            if s.get("user_id") == user_id and s.get("set_id") == set_id and s.get("completed")
        ]
        if not completed:
            return None
        best = max(completed, key=lambda s: s.get("correct_answers", 0))
        return {"correct_answers": best.get("correct_answers", 0)}
