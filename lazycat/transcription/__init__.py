from lazycat.transcription.base import TranscriptionEngine
from lazycat.transcription.vosk import VoskTranscriber

__all__ = ["TranscriptionEngine", "VoskTranscriber"]
