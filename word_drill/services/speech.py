from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

import httpx

from word_drill.config import AUDIO_DIR

UTC = timezone.utc

VOICE_PRESETS = {
    "de-DE": [
        {"id": "de-DE-KatjaNeural", "label": "Deutsch - Katja"},
        {"id": "de-DE-ConradNeural", "label": "Deutsch - Conrad"},
        {"id": "de-DE-AmalaNeural", "label": "Deutsch - Amala"},
    ],
    "en-GB": [
        {"id": "en-GB-SoniaNeural", "label": "English (UK) - Sonia"},
        {"id": "en-GB-RyanNeural", "label": "English (UK) - Ryan"},
    ],
    "en-US": [
        {"id": "en-US-JennyNeural", "label": "English (US) - Jenny"},
        {"id": "en-US-GuyNeural", "label": "English (US) - Guy"},
    ],
    "fr-FR": [
        {"id": "fr-FR-DeniseNeural", "label": "Français - Denise"},
        {"id": "fr-FR-HenriNeural", "label": "Français - Henri"},
    ],
}

DEFAULT_LANG = "de-DE"


class SpeechService:
    def __init__(self, audio_dir: Path = AUDIO_DIR) -> None:
        self.audio_dir = audio_dir
        self.openai_api_key = os.getenv("OPENAI_API_KEY")
        self.openai_base = os.getenv("WORD_DRILL_OPENAI_BASE_URL", "https://api.openai.com/v1")
        self.tts_model = os.getenv("WORD_DRILL_TTS_MODEL", "gpt-4o-mini-tts")

    def list_voices(self) -> dict:
        return VOICE_PRESETS

    def resolve_voice(self, lang: str, voice: str | None = None) -> tuple[str, str]:
        lang = lang if lang in VOICE_PRESETS else self._closest_lang(lang)
        return lang, voice or VOICE_PRESETS[lang][0]["id"]

    async def synthesize(self, *, text: str, lang: str = DEFAULT_LANG, voice: str | None = None) -> Path:
        if not text.strip():
            raise ValueError("text is empty")

        lang, final_voice = self.resolve_voice(lang, voice)
        self.audio_dir.mkdir(parents=True, exist_ok=True)
        ts = datetime.now(UTC).strftime("%Y%m%d%H%M%S%f")
        out = self.audio_dir / f"tts_{ts}.mp3"

        edge_error = None
        try:
            import edge_tts

            communicator = edge_tts.Communicate(text=text, voice=final_voice)
            await communicator.save(str(out))
            return out
        except Exception as exc:
            edge_error = exc

        if self.openai_api_key:
            self._openai_tts(text=text, out=out)
            return out

        raise RuntimeError(f"TTS unavailable. edge_tts={edge_error}")

    def _openai_tts(self, *, text: str, out: Path) -> None:
        url = self.openai_base.rstrip("/") + "/audio/speech"
        headers = {
            "Authorization": f"Bearer {self.openai_api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.tts_model,
            "voice": "alloy",
            "input": text,
            "format": "mp3",
        }
        with httpx.Client(timeout=90) as client:
            resp = client.post(url, headers=headers, json=payload)
            resp.raise_for_status()
            out.write_bytes(resp.content)

    @staticmethod
    def _closest_lang(lang: str) -> str:
        prefix = (lang or "").split("-", 1)[0].lower()
        for key in VOICE_PRESETS:
            if key.split("-", 1)[0].lower() == prefix:
                return key
        return DEFAULT_LANG
