"""Media preprocessing applied before transcription."""
