import json
import os
from pathlib import Path

TOKEN_KEY = "token"
DEFAULT_PATH = Path.home() / ".iot_dashboard" / "storage.json"


class TokenStore:
    """Small JSON key/value file that keeps the bearer token across restarts."""

    def __init__(self, path: str | os.PathLike | None = None, key: str = TOKEN_KEY):
        self.path = Path(path or os.getenv("DASHBOARD_STORAGE", DEFAULT_PATH))
        self.key = key

    def _load(self) -> dict:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            return {}

    def _save(self, data: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def get(self) -> str | None:
        return self._load().get(self.key)

    def set(self, token: str):
        data = self._load()
        data[self.key] = token
        self._save(data)

    def clear(self):
        data = self._load()
        if data.pop(self.key, None) is not None:
            self._save(data)
