from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from word_drill.config import DECKS_DIR, MANIFEST_PATH

logger = logging.getLogger(__name__)

UPLOADED_SUFFIX = " (Uploaded)"
MANIFEST_ERROR = "Could not load sample decks. You can still upload your own file."


class DeckNotFoundError(KeyError):
    pass


@dataclass
class DeckEntry:
    name: str
    path: str
    description: str | None = None
    is_local: bool = False
    payload: bytes | None = None

    @property
    def filename(self) -> str:
        if self.is_local:
            return self.name[: -len(UPLOADED_SUFFIX)] if self.name.endswith(UPLOADED_SUFFIX) else self.name
        return Path(self.path).name

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "description": self.description,
            "is_local": self.is_local,
        }


class DeckCatalog:
    """Sample decks from the manifest plus decks uploaded during this run."""

    def __init__(self, decks_dir: Path = DECKS_DIR, manifest_path: Path = MANIFEST_PATH) -> None:
        self.decks_dir = decks_dir
        self.manifest_path = manifest_path
        self.predefined: list[DeckEntry] = []
        self.uploaded: list[DeckEntry] = []
        self.error: str | None = None
        self._upload_seq = 0

    def load_manifest(self) -> list[DeckEntry]:
        try:
            raw = json.loads(self.manifest_path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise ValueError("manifest must be a JSON list")
            entries = [self._entry_from_manifest(item) for item in raw]
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load deck manifest from %s: %s", self.manifest_path, exc)
            self.predefined = []
            self.error = MANIFEST_ERROR
            return []

        self.predefined = entries
        self.error = None
        return entries

    def list_decks(self) -> list[DeckEntry]:
        return self.uploaded + self.predefined

    def remember_upload(self, filename: str, payload: bytes) -> DeckEntry:
        name = f"{filename}{UPLOADED_SUFFIX}"
        existing = next((entry for entry in self.uploaded if entry.name == name), None)
        if existing is not None:
            return existing

        self._upload_seq += 1
        entry = DeckEntry(
            name=name,
            path=f"local-{self._upload_seq}-{filename}",
            description="Uploaded during this session.",
            is_local=True,
            payload=payload,
        )
        self.uploaded.insert(0, entry)
        return entry

    def get(self, name: str) -> DeckEntry:
        for entry in self.list_decks():
            if entry.name == name:
                return entry
        raise DeckNotFoundError(name)

    def read_payload(self, entry: DeckEntry) -> bytes:
        if entry.is_local:
            return entry.payload or b""
        path = self.resolve_path(entry.path)
        return path.read_bytes()

    def resolve_path(self, relative: str) -> Path:
        root = self.decks_dir.resolve()
        path = (root / relative).resolve()
        if root != path and root not in path.parents:
            raise ValueError(f"deck path escapes the decks directory: {relative}")
        return path

    @staticmethod
    def _entry_from_manifest(item: object) -> DeckEntry:
        if not isinstance(item, dict):
            raise ValueError("manifest entries must be objects")
        name = str(item.get("name") or "").strip()
        path = str(item.get("path") or "").strip()
        if not name or not path:
            raise ValueError("manifest entries need a name and a path")
        description = item.get("description")
        return DeckEntry(name=name, path=path, description=str(description) if description else None)
