import tempfile
from pathlib import Path

import pytest

from chat_intake.domain.exceptions import PersistenceError
from chat_intake.infrastructure.storage.json_store import JsonTurnStore


def test_json_store_append_and_list_recent():
    with tempfile.TemporaryDirectory() as d:
        store = JsonTurnStore(root=Path(d) / ".storage")
        for i in range(4):
            store.append("guest-1", f"frage {i}", f"antwort {i}", "de")
        recent = store.list_recent("guest-1", 2)
        assert [t.user_text for t in recent] == ["frage 2", "frage 3"]
        assert recent[-1].response_text == "antwort 3"
        assert recent[-1].locale == "de"
        assert recent[-1].created_at.tzinfo is not None


def test_json_store_separates_identities_and_hides_them_in_paths():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = JsonTurnStore(root=root)
        store.append("user-42@example.com", "hi", "hello", "en")
        store.append("guest-7", "hallo", "servus", "de")
        assert [t.user_text for t in store.list_recent("guest-7", 10)] == ["hallo"]
        names = [p.name for p in (root / "turns").iterdir()]
        assert len(names) == 2
        assert all("user-42" not in n and "guest-7" not in n for n in names)


def test_json_store_clear_and_missing_identity():
    with tempfile.TemporaryDirectory() as d:
        store = JsonTurnStore(root=Path(d))
        assert store.list_recent("nobody", 5) == []
        store.append("guest-1", "a", "b", "en")
        store.clear("guest-1")
        assert store.list_recent("guest-1", 5) == []
        store.clear("guest-1")


def test_json_store_skips_corrupt_lines():
    with tempfile.TemporaryDirectory() as d:
        store = JsonTurnStore(root=Path(d))
        store.append("guest-1", "a", "b", "en")
        path = next((Path(d) / "turns").iterdir())
        with path.open("a", encoding="utf-8") as f:
            f.write("{not json\n")
        store.append("guest-1", "c", "d", "en")
        assert [t.user_text for t in store.list_recent("guest-1", 10)] == ["a", "c"]
        assert store.list_recent("guest-1", 0) == []


def test_json_store_write_error_raises_persistence_error(monkeypatch):
    with tempfile.TemporaryDirectory() as d:
        store = JsonTurnStore(root=Path(d))

        def broken_open(self, *a, **kw):
            raise OSError("read-only file system")

        monkeypatch.setattr(Path, "open", broken_open)
        with pytest.raises(PersistenceError) as exc:
            store.append("guest-1", "a", "b", "en")
        assert exc.value.code == "STORE_WRITE_ERROR"
