"""FastAPI server exposing the OpenAI-compatible transcription endpoint."""

from transcription_gateway import __version__

__all__ = ["__version__"]
