from __future__ import annotations

import word_drill.app as app_module
from word_drill.config import ARTIFACTS_DIR


def _partner_id(snapshot: dict, left_card: dict) -> str:
    return next(card["id"] for card in snapshot["right_cards"] if card["pair_id"] == left_card["pair_id"])


def _match_page(client) -> dict:
    snapshot = client.get("/api/session").json()["session"]
    for card in snapshot["left_cards"]:
        client.post("/api/session/select", json={"card_id": card["id"], "column": "left"})
        resp = client.post("/api/session/select", json={"card_id": _partner_id(snapshot, card), "column": "right"})
        assert resp.status_code == 200
    return client.get("/api/session").json()["session"]


def test_health_and_deck_listing(client):
    assert client.get("/health").json() == {"status": "ok"}

    decks = client.get("/api/decks").json()
    assert decks["ok"] is True
    assert decks["error"] is None
    assert [deck["name"] for deck in decks["decks"]] == ["Animals"]


def test_select_sample_deck_and_play_to_completion(client, scheduler):
    resp = client.post("/api/decks/select", json={"name": "Animals"})
    assert resp.status_code == 200
    snapshot = resp.json()["session"]
    assert snapshot["phase"] == "PAGE_READY"
    assert snapshot["cards_in_set"] == 3
    assert snapshot["total_sets"] == 2
    assert snapshot["feedback"]["event"] == "loaded"

    cleared = _match_page(client)
    assert cleared["phase"] == "PAGE_CLEARED"
    assert cleared["score"] == 3
    assert cleared["attempts"] == 3

    scheduler.run_all()
    second = client.get("/api/session").json()["session"]
    assert second["phase"] == "PAGE_READY"
    assert second["set_number"] == 2
    assert second["cards_in_set"] == 1

    _match_page(client)
    scheduler.run_all()
    done = client.get("/api/session").json()["session"]
    assert done["phase"] == "COMPLETED"
    assert done["feedback"]["event"] == "deck_complete"


def test_selecting_source_card_requests_pronunciation(client):
    snapshot = client.post("/api/decks/select", json={"name": "Animals"}).json()["session"]
    left = snapshot["left_cards"][0]
    right = snapshot["right_cards"][0]

    first = client.post("/api/session/select", json={"card_id": left["id"], "column": "left"}).json()
    assert first["pronounce"]["text"] == left["text"]
    assert first["session"]["selected_left_id"] == left["id"]

    second = client.post("/api/session/select", json={"card_id": right["id"], "column": "right"}).json()
    assert second["pronounce"] is None
    assert second["session"]["attempts"] == 1


def test_mismatch_reverts_after_scheduler_runs(client, scheduler):
    snapshot = client.post("/api/decks/select", json={"name": "Animals"}).json()["session"]
    left = snapshot["left_cards"][0]
    wrong = next(card for card in snapshot["right_cards"] if card["pair_id"] != left["pair_id"])

    client.post("/api/session/select", json={"card_id": left["id"], "column": "left"})
    resp = client.post("/api/session/select", json={"card_id": wrong["id"], "column": "right"}).json()
    statuses = {card["id"]: card["status"] for card in resp["session"]["left_cards"] + resp["session"]["right_cards"]}
    assert statuses[left["id"]] == "REVEALED_INCORRECT"
    assert statuses[wrong["id"]] == "REVEALED_INCORRECT"
    assert resp["session"]["score"] == 0
    assert resp["session"]["feedback"]["message"] == "Incorrect. Try again!"

    scheduler.run_all()
    after = client.get("/api/session").json()["session"]
    assert all(card["status"] == "IDLE" for card in after["left_cards"] + after["right_cards"])


def test_upload_deck_is_loaded_and_remembered(client):
    payload = "gehen,to go\nkommen,to come\nGEHEN,TO GO\n".encode("utf-8")

    resp = client.post("/api/decks/upload", files={"file": ("week.csv", payload, "text/csv")})

    assert resp.status_code == 200
    body = resp.json()
    assert body["deck"]["name"] == "week.csv (Uploaded)"
    assert body["session"]["total_pairs"] == 2
    assert body["session"]["deck_label"] == "week.csv"

    decks = client.get("/api/decks").json()["decks"]
    assert decks[0]["name"] == "week.csv (Uploaded)"
    assert decks[0]["is_local"] is True

    reloaded = client.post("/api/decks/select", json={"name": "week.csv (Uploaded)"})
    assert reloaded.status_code == 200
    assert reloaded.json()["session"]["total_pairs"] == 2


def test_bad_upload_leaves_session_in_error(client):
    resp = client.post("/api/decks/upload", files={"file": ("broken.csv", b"only-one-column\n", "text/csv")})

    assert resp.status_code == 400
    assert "broken.csv" in resp.json()["detail"]
    snapshot = client.get("/api/session").json()["session"]
    assert snapshot["phase"] == "ERROR"
    assert snapshot["error"] == "IMPORT_FAILED"
    assert snapshot["left_cards"] == []

    empty = client.post("/api/decks/upload", files={"file": ("empty.csv", b"", "text/csv")})
    assert empty.status_code == 400


def test_oversized_csv_upload_leaves_session_in_error(client):
    payload = ("a" * 200_000 + ",b\n").encode("utf-8")

    resp = client.post("/api/decks/upload", files={"file": ("big.csv", payload, "text/csv")})

    assert resp.status_code == 400
    assert "big.csv" in resp.json()["detail"]
    snapshot = client.get("/api/session").json()["session"]
    assert snapshot["phase"] == "ERROR"
    assert snapshot["error"] == "IMPORT_FAILED"
    assert app_module.session.phase.value == "ERROR"


def test_unexpected_select_failure_still_reaches_error(client, monkeypatch):
    def exploding(_filename, _payload):
        raise RuntimeError("parser crashed")

    monkeypatch.setattr(app_module, "parse_deck", exploding)

    resp = client.post("/api/decks/select", json={"name": "Animals"})

    assert resp.status_code == 500
    assert "parser crashed" in resp.json()["detail"]
    snapshot = client.get("/api/session").json()["session"]
    assert snapshot["phase"] == "ERROR"
    assert snapshot["error"] == "IMPORT_FAILED"


def test_unknown_deck_is_404(client):
    resp = client.post("/api/decks/select", json={"name": "Missing"})
    assert resp.status_code == 404


def test_restart_requires_a_loaded_deck(client):
    resp = client.post("/api/session/restart").json()
    assert resp["ok"] is False
    assert resp["session"]["error"] == "RESTART_WITH_NO_DECK"

    client.post("/api/decks/select", json={"name": "Animals"})
    restarted = client.post("/api/session/restart").json()
    assert restarted["ok"] is True
    assert restarted["session"]["phase"] == "PAGE_READY"
    assert restarted["session"]["feedback"]["event"] == "restart"


def test_invalid_column_is_rejected(client):
    client.post("/api/decks/select", json={"name": "Animals"})
    resp = client.post("/api/session/select", json={"card_id": "x", "column": "middle"})
    assert resp.status_code == 422


def test_tts_returns_artifact_url(client, monkeypatch):
    async def fake_synthesize(*, text, lang, voice=None):
        assert text == "der Hund"
        return ARTIFACTS_DIR / "audio" / "tts_test.mp3"

    monkeypatch.setattr(app_module.speech_service, "synthesize", fake_synthesize)

    resp = client.post("/api/speech/tts", json={"text": "der Hund"})

    assert resp.status_code == 200
    assert resp.json()["audio_url"] == "/artifacts/audio/tts_test.mp3"


def test_tts_failure_is_503(client, monkeypatch):
    async def failing(**_kwargs):
        raise RuntimeError("TTS unavailable. edge_tts=offline")

    monkeypatch.setattr(app_module.speech_service, "synthesize", failing)

    resp = client.post("/api/speech/tts", json={"text": "der Hund"})
    assert resp.status_code == 503
