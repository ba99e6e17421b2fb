from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import word_drill.app as app_module
from word_drill.config import DrillSettings
from word_drill.decks.catalog import DeckCatalog
from word_drill.game.session import SetSession
from word_drill.game.timers import ManualScheduler

SAMPLE_CSV = "der Hund,the dog\ndie Katze,the cat\ndas Haus,the house\nder Baum,the tree\n"


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def session(scheduler):
    return SetSession(settings=DrillSettings(set_size=5), scheduler=scheduler, rng=random.Random(7))


@pytest.fixture()
def decks_dir(tmp_path):
    folder = tmp_path / "decks"
    folder.mkdir()
    (folder / "animals.csv").write_text(SAMPLE_CSV, encoding="utf-8")
    (folder / "file-manifest.json").write_text(
        '[{"name": "Animals", "path": "animals.csv", "description": "Four animals."}]',
        encoding="utf-8",
    )
    return folder


@pytest.fixture()
def client(decks_dir, scheduler, monkeypatch):
    relay = app_module.PronunciationRelay()
    drill = SetSession(
        settings=DrillSettings(set_size=3),
        scheduler=scheduler,
        on_pronounce=relay.push,
        rng=random.Random(11),
    )
    monkeypatch.setattr(app_module, "relay", relay)
    monkeypatch.setattr(app_module, "session", drill)
    monkeypatch.setattr(app_module, "catalog", DeckCatalog(decks_dir, decks_dir / "file-manifest.json"))
    with TestClient(app_module.app) as c:
        yield c
