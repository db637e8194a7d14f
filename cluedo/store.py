"""基于 JSON 文件的对局存储。"""

from __future__ import annotations

import json
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from .session import DeductionSession


class GameNotFoundError(KeyError):
    pass


class GameStore:
    """每局游戏一个 JSON 文件：{"game_id", "created_at", "updated_at", "snapshot"}。"""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, game_id: str) -> Path:
        if not game_id or "/" in game_id or "\\" in game_id or game_id.startswith("."):
            raise GameNotFoundError(game_id)
        return self.root / f"{game_id}.json"

    @staticmethod
    def _atomic_write_json(path: Path, value: Dict[str, Any]) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(value, fh, ensure_ascii=False, indent=2)
            fh.flush()
            os.fsync(fh.fileno())
        tmp.replace(path)

    @staticmethod
    def new_game_id() -> str:
        return f"game_{uuid.uuid4().hex[:10]}"

    def create(self, session: DeductionSession) -> str:
        game_id = self.new_game_id()
        now = datetime.now(timezone.utc).isoformat()
        self._atomic_write_json(
            self._path(game_id),
            {"game_id": game_id, "created_at": now, "updated_at": now, "snapshot": session.to_snapshot()},
        )
        return game_id

    def _read(self, game_id: str) -> Dict[str, Any]:
        path = self._path(game_id)
        if not path.exists():
            raise GameNotFoundError(game_id)
        return json.loads(path.read_text(encoding="utf-8"))

    def load(self, game_id: str) -> DeductionSession:
        return DeductionSession.from_snapshot(self._read(game_id)["snapshot"])

    def save(self, game_id: str, session: DeductionSession) -> None:
        record = self._read(game_id)
        record["updated_at"] = datetime.now(timezone.utc).isoformat()
        record["snapshot"] = session.to_snapshot()
        self._atomic_write_json(self._path(game_id), record)

    def list_recent(self, limit: int = 10) -> List[Dict[str, Any]]:
        """按创建时间倒序列出对局摘要。"""
        games = []
        for path in self.root.glob("*.json"):
            record = json.loads(path.read_text(encoding="utf-8"))
            games.append(
                {
                    "game_id": record["game_id"],
                    "created_at": record["created_at"],
                    "name": record["snapshot"].get("name"),
                }
            )
        games.sort(key=lambda item: item["created_at"], reverse=True)
        return games[:limit]
