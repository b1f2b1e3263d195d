"""Core pipeline components for the transcription gateway."""
