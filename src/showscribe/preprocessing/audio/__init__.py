"""Audio compression for fitting media under transcription provider size limits.

Oversized recordings are transcoded to mono MP3 at a bitrate and sample rate
chosen by input size; speech stays intelligible well below music-quality settings.
"""

from .compression import (
    AudioCompressor,
    CompressionResult,
    MediaKind,
    is_compression_available,
    media_kind_for,
    select_tier,
    should_compress,
)
from .factory import create_audio_compressor

__all__ = [
    "AudioCompressor",
    "CompressionResult",
    "MediaKind",
    "create_audio_compressor",
    "is_compression_available",
    "media_kind_for",
    "select_tier",
    "should_compress",
]
