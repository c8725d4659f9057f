"""Pronunciation source selection and neural TTS rendering (Edge TTS)."""

import logging
import os
import random
import uuid
from dataclasses import dataclass
from typing import List, Optional, Sequence

import edge_tts

from ..config import get_language
from ..models import WordRecord
from ..utils.parsing import TextParser

logger = logging.getLogger(__name__)


@dataclass
class VoiceInfo:
    """A voice offered by the local speech engine."""
    name: str
    lang: str
    local_service: bool = False


@dataclass
class PronunciationSource:
    """One candidate way of playing a word, in precedence order."""
    kind: str  # "record-audio" | "neural-tts" | "local-speech"
    text: str
    lang: str
    url: Optional[str] = None
    voice: Optional[str] = None


class PronunciationPolicy:
    """
    Precedence policy handed to the audio-playing collaborator.

    1. The ``audio_url`` stored on the record (human recording)
    2. Neural text-to-speech keyed by language
    3. The local speech engine, best voice first
    """

    QUALITY_MARKERS = ("Premium", "Enhanced", "Natural")

    def sources(self, record: WordRecord, lang: str = "en-US",
                voices: Sequence[VoiceInfo] = ()) -> List[PronunciationSource]:
        """
        Ordered pronunciation sources for a record.

        Args:
            record: The word to pronounce
            lang: BCP-47 language of the spoken text
            voices: Voices the local speech engine reports

        Returns:
            Candidates in the order the player should try them
        """
        text = record.display_word or record.key
        result = []
        if record.audio_url:
            result.append(PronunciationSource("record-audio", text, lang, url=record.audio_url))

        result.append(PronunciationSource(
            "neural-tts", text, lang, voice=get_language(lang)["voice"]
        ))

        local = self.pick_local_voice(voices, lang)
        result.append(PronunciationSource(
            "local-speech", text, lang, voice=local.name if local else None
        ))
        return result

    @classmethod
    def pick_local_voice(cls, voices: Sequence[VoiceInfo], lang: str) -> Optional[VoiceInfo]:
        """
        Pick the best local voice for a language.

        Prefers a voice whose name signals higher quality, then a locally
        hosted voice, then any voice sharing the language prefix.
        """
        prefix = lang.split("-")[0].lower()
        matching = [v for v in voices if v.lang.lower().startswith(prefix)]
        for voice in matching:
            if any(marker in voice.name for marker in cls.QUALITY_MARKERS):
                return voice
        for voice in matching:
            if voice.local_service:
                return voice
        return matching[0] if matching else None


class NeuralTTSFetcher:
    """Render pronunciation audio via Edge TTS."""

    def __init__(self, lang: str = "en-US", randomize_voice: bool = False):
        settings = get_language(lang)
        self.voice = settings["voice"]
        self.available_voices = settings.get("available_voices", [self.voice])
        self.randomize_voice = randomize_voice

    def get_voice(self) -> str:
        if self.randomize_voice:
            return random.choice(self.available_voices)
        return self.voice

    async def close(self) -> None:
        """Edge TTS doesn't require explicit cleanup."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def fetch(self, source: str, output_path: str) -> bool:
        """
        Generate an MP3 for the text.

        Uses atomic write pattern: write to temp file, then rename.

        Args:
            source: Text to convert to speech
            output_path: Path to save MP3

        Returns:
            True if successful, False otherwise
        """
        clean_text = TextParser.clean_for_tts(source)
        if not clean_text:
            return False

        temp_path = f"{output_path}.{uuid.uuid4().hex[:8]}.tmp"
        try:
            directory = os.path.dirname(output_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            communicate = edge_tts.Communicate(clean_text, self.get_voice())
            await communicate.save(temp_path)

            if os.path.exists(temp_path) and os.path.getsize(temp_path) > 100:
                os.replace(temp_path, output_path)
                return True
            return False
        except Exception as e:
            logger.warning("Neural TTS failed for %r: %s", clean_text, str(e)[:80])
            return False
        finally:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass
