"""Factory function for creating audio compressors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from .compression import AudioCompressor, is_compression_available

if TYPE_CHECKING:
    from showscribe.config import Config

logger = logging.getLogger(__name__)


def create_audio_compressor(cfg: "Config") -> Optional[AudioCompressor]:
    """Create an audio compressor if ffmpeg is available.

    Args:
        cfg: Configuration object with compression settings

    Returns:
        AudioCompressor instance if ffmpeg is available, None otherwise
    """
    if not is_compression_available():
        logger.warning(
            "ffmpeg not found. Oversized audio will be rejected instead of compressed. "
            "Install ffmpeg to enable compression."
        )
        return None
    return AudioCompressor(timeout=cfg.ffmpeg_timeout)
