from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from word_drill.api.schemas import CardSelectRequest, DeckSelectRequest, TTSRequest
from word_drill.config import ARTIFACTS_DIR, ensure_dirs, load_settings
from word_drill.decks.catalog import DeckCatalog, DeckNotFoundError
from word_drill.game.session import SetSession
from word_drill.pipeline.importer import DeckImportError, parse_deck
from word_drill.services.speech import SpeechService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class PronunciationRelay:
    """Collects pronunciation requests raised while handling one selection."""

    def __init__(self) -> None:
        self._texts: list[str] = []

    def push(self, text: str) -> None:
        self._texts.append(text)

    def clear(self) -> None:
        self._texts = []

    def take(self) -> str | None:
        text = self._texts[-1] if self._texts else None
        self._texts = []
        return text


settings = load_settings()
catalog = DeckCatalog()
speech_service = SpeechService()
relay = PronunciationRelay()
session = SetSession(settings=settings, on_pronounce=relay.push)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    ensure_dirs()
    catalog.load_manifest()
    yield


app = FastAPI(title="Word Drill", version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/artifacts", StaticFiles(directory=str(ARTIFACTS_DIR), check_dir=False), name="artifacts")


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/api/decks")
async def list_decks() -> dict:
    return {
        "ok": True,
        "decks": [entry.to_dict() for entry in catalog.list_decks()],
        "error": catalog.error,
    }


@app.post("/api/decks/select")
async def select_deck(req: DeckSelectRequest) -> dict:
    try:
        entry = catalog.get(req.name)
    except DeckNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"deck not found: {req.name}") from exc

    session.begin_loading(entry.name)
    try:
        payload = catalog.read_payload(entry)
        pairs = parse_deck(entry.filename, payload)
    except (OSError, ValueError) as exc:
        logger.warning("Failed to load deck %s: %s", entry.name, exc)
        session.load_failed(f"Error loading {entry.name}: {exc}")
        raise HTTPException(status_code=400, detail=session.feedback.message) from exc
    except Exception as exc:
        logger.exception("Unexpected failure loading deck %s", entry.name)
        session.load_failed(f"Error loading {entry.name}: {exc}")
        raise HTTPException(status_code=500, detail=session.feedback.message) from exc

    session.load_deck(pairs, label=entry.filename)
    return {"ok": True, "deck": entry.to_dict(), "session": session.snapshot()}


@app.post("/api/decks/upload")
async def upload_deck(file: UploadFile = File(...)) -> dict:
    payload = await file.read()
    safe_name = file.filename.replace("/", "_") if file.filename else "upload.xlsx"
    if not payload:
        session.load_failed("Error: Could not read file data.")
        raise HTTPException(status_code=400, detail="empty file")

    session.begin_loading(safe_name)
    try:
        pairs = parse_deck(safe_name, payload)
    except DeckImportError as exc:
        session.load_failed(f"Error parsing {safe_name}: {exc}")
        raise HTTPException(status_code=400, detail=session.feedback.message) from exc
    except Exception as exc:
        logger.exception("Unexpected failure parsing upload %s", safe_name)
        session.load_failed(f"Error parsing {safe_name}: {exc}")
        raise HTTPException(status_code=500, detail=session.feedback.message) from exc

    entry = catalog.remember_upload(safe_name, payload)
    session.load_deck(pairs, label=safe_name)
    return {"ok": True, "deck": entry.to_dict(), "session": session.snapshot()}


@app.get("/api/session")
async def session_state() -> dict:
    return {"ok": True, "session": session.snapshot()}


@app.post("/api/session/select")
async def select_card(req: CardSelectRequest) -> dict:
    relay.clear()
    session.select_card(req.card_id, req.column)
    text = relay.take()
    pronounce = {"text": text, "lang": settings.pronunciation_lang} if text else None
    return {"ok": True, "pronounce": pronounce, "session": session.snapshot()}


@app.post("/api/session/restart")
async def restart_session() -> dict:
    session.restart()
    return {"ok": session.error is None, "session": session.snapshot()}


@app.get("/api/speech/voices")
def speech_voices() -> dict:
    return {"ok": True, "voices": speech_service.list_voices(), "default_lang": settings.pronunciation_lang}


@app.post("/api/speech/tts")
async def speech_tts(req: TTSRequest) -> dict:
    try:
        out = await speech_service.synthesize(
            text=req.text,
            lang=req.lang or settings.pronunciation_lang,
            voice=req.voice,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"TTS unavailable: {exc}") from exc

    return {
        "ok": True,
        "audio_url": "/artifacts/" + str(out.relative_to(ARTIFACTS_DIR)).replace("\\", "/"),
    }
