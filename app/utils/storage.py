"""
Durable client storage
Holds the session token and the remembered email between runs. Cached
catalog results never go here.
"""
from pathlib import Path
from typing import Dict, Optional, Union
import json
import logging

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
REMEMBERED_EMAIL_KEY = "remembered_email"


class MemoryStorage:
    """In-process storage, mostly for tests."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JSONFileStorage:
    """String key/value store persisted as a small JSON document."""

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path).expanduser()

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable client storage at {self._path}: {e}")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)} if isinstance(data, dict) else {}

    def _save(self, values: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        # Holds a bearer token; owner read/write only
        tmp_path.touch(mode=0o600, exist_ok=True)
        tmp_path.chmod(0o600)
        tmp_path.write_text(json.dumps(values), encoding="utf-8")
        tmp_path.replace(self._path)

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        values = self._load()
        values[key] = value
        self._save(values)

    def remove(self, key: str) -> None:
        values = self._load()
        if key in values:
            del values[key]
            self._save(values)
