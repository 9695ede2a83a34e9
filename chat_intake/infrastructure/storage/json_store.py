import hashlib
import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List
from uuid import uuid4

from chat_intake.config.settings import settings
from chat_intake.domain.conversation import ConversationTurn, TurnStore
from chat_intake.domain.exceptions import PersistenceError
from chat_intake.domain.models import Locale


class JsonTurnStore(TurnStore):
    """按身份标识分文件保存对话轮次（每行一个 JSON）。

    文件名取身份标识的 sha256 摘要，避免把用户 id 或访客 token 写进路径。
    """

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._turn_root = self._root / "turns"
        self._turn_root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def append(self, identity: str, user_text: str, response_text: str, locale: Locale) -> ConversationTurn:
        turn = ConversationTurn(
            id=f"t-{uuid4().hex}",
            identity=identity,
            user_text=user_text,
            response_text=response_text,
            locale=locale,
            created_at=datetime.now(timezone.utc),
        )
        payload = {
            "id": turn.id,
            "identity": turn.identity,
            "user_text": turn.user_text,
            "response_text": turn.response_text,
            "locale": turn.locale,
            "created_at": turn.created_at.isoformat().replace("+00:00", "Z"),
        }
        line = json.dumps(payload, ensure_ascii=False)
        try:
            with self._lock:
                with self._path_for(identity).open("a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except OSError as e:
            raise PersistenceError(code="STORE_WRITE_ERROR", message=str(e))
        return turn

    def list_recent(self, identity: str, limit: int) -> List[ConversationTurn]:
        """返回最近 limit 轮，按时间正序（最新的在最后）。"""
        if limit <= 0:
            return []
        path = self._path_for(identity)
        if not path.exists():
            return []
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise PersistenceError(code="STORE_READ_ERROR", message=str(e))
        items: List[ConversationTurn] = []
        for line in lines:
            try:
                items.append(self._to_turn(json.loads(line)))
            except (ValueError, KeyError):
                continue
        items.sort(key=lambda t: t.created_at)
        return items[-limit:]

    def clear(self, identity: str) -> None:
        path = self._path_for(identity)
        try:
            with self._lock:
                path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(code="STORE_DELETE_ERROR", message=str(e))

    def _path_for(self, identity: str) -> Path:
        digest = hashlib.sha256(identity.encode("utf-8")).hexdigest()[:32]
        return self._turn_root / f"{digest}.jsonl"

    def _to_turn(self, data: Dict[str, Any]) -> ConversationTurn:
        return ConversationTurn(
            id=data["id"],
            identity=data["identity"],
            user_text=data.get("user_text") or "",
            response_text=data.get("response_text") or "",
            locale=data.get("locale") or "de",
            created_at=datetime.fromisoformat(str(data["created_at"]).replace("Z", "+00:00")),
        )
