"""Concrete capture, transcription and synthesis backends."""
