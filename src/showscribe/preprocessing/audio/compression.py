"""FFmpeg-based audio compression."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from ... import config_constants
from ...exceptions import CompressionError, CompressionUnavailableError

logger = logging.getLogger(__name__)

BYTES_PER_MB = config_constants.BYTES_PER_MB


class MediaKind(str, Enum):
    """Container family of an accepted upload."""

    UNCOMPRESSED = "uncompressed"  # WAV
    COMPRESSED = "compressed"  # MP3


@dataclass(frozen=True)
class CompressionResult:
    """Outcome of one compression invocation.

    ``compression_ratio`` is the fraction of bytes saved: ``1 - compressed/original``.
    The output file is owned by the caller, which deletes it after transcription.
    """

    output_path: str
    original_size: int
    compressed_size: int
    compression_ratio: float
    bitrate: str
    sample_rate: int
    elapsed_seconds: float = 0.0


def is_compression_available() -> bool:
    """Check if ffmpeg is available on the system."""
    return shutil.which("ffmpeg") is not None


def media_kind_for(content_type: Optional[str], filename: Optional[str] = None) -> Optional[MediaKind]:
    """Classify an upload by MIME type, falling back to the file extension.

    Returns:
        The media kind, or None when the input is not an accepted audio type
    """
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime in config_constants.UNCOMPRESSED_AUDIO_TYPES:
        return MediaKind.UNCOMPRESSED
    if mime in config_constants.COMPRESSED_AUDIO_TYPES:
        return MediaKind.COMPRESSED

    # Generic MIME types (application/octet-stream, missing) defer to the extension
    if mime and mime not in ("application/octet-stream", "binary/octet-stream"):
        return None
    suffix = Path(filename or "").suffix.lower()
    if suffix in config_constants.UNCOMPRESSED_AUDIO_EXTENSIONS:
        return MediaKind.UNCOMPRESSED
    if suffix in config_constants.COMPRESSED_AUDIO_EXTENSIONS:
        return MediaKind.COMPRESSED
    return None


def should_compress(
    kind: MediaKind,
    size_bytes: int,
    uncompressed_over_mb: float = config_constants.DEFAULT_COMPRESS_UNCOMPRESSED_OVER_MB,
    compressed_over_mb: float = config_constants.DEFAULT_COMPRESS_COMPRESSED_OVER_MB,
) -> bool:
    """Decide whether an input needs transcoding before transcription.

    Uncompressed input (WAV) is compressed above ``uncompressed_over_mb``;
    already-compressed input (MP3) only above ``compressed_over_mb``.
    """
    threshold_mb = (
        uncompressed_over_mb if kind == MediaKind.UNCOMPRESSED else compressed_over_mb
    )
    return size_bytes > threshold_mb * BYTES_PER_MB


def select_tier(size_bytes: int) -> Tuple[str, int]:
    """Return ``(bitrate, sample_rate)`` for an input of ``size_bytes``.

    >100 MB -> 32 kbps / 16 kHz, >50 MB -> 48 kbps / 22.05 kHz, else 64 kbps / 44.1 kHz.
    """
    size_mb = size_bytes / BYTES_PER_MB
    for over_mb, bitrate, sample_rate in config_constants.COMPRESSION_TIERS:
        if size_mb > over_mb:
            return bitrate, sample_rate
    return config_constants.COMPRESSION_DEFAULT_TIER


def compressed_output_path(input_path: str) -> str:
    """``<dir>/<stem>-compressed.mp3`` next to the input."""
    path = Path(input_path)
    return str(path.with_name(f"{path.stem}-compressed.mp3"))


class AudioCompressor:
    """Transcode audio to mono MP3 with size-tiered settings.

    Args:
        timeout: Timeout for a single ffmpeg run in seconds
    """

    def __init__(self, timeout: int = config_constants.DEFAULT_FFMPEG_TIMEOUT_SECONDS):
        self.timeout = timeout

    def compress(self, input_path: str) -> CompressionResult:
        """Compress ``input_path`` and return the result.

        The partial output is removed when ffmpeg fails; on success the output
        file belongs to the caller.

        Raises:
            CompressionUnavailableError: If ffmpeg is not installed
            CompressionError: If ffmpeg fails, times out, or produces no output
        """
        if not is_compression_available():
            logger.error("FFmpeg not available. Cannot compress audio.")
            raise CompressionUnavailableError()

        original_size = os.path.getsize(input_path)
        bitrate, sample_rate = select_tier(original_size)
        output_path = compressed_output_path(input_path)

        logger.info(
            "Compressing audio (%.1fMB) with %s bitrate at %dHz",
            original_size / BYTES_PER_MB,
            bitrate,
            sample_rate,
        )

        # -vn: audio only, -ac 1: mono, -c:a libmp3lame: MP3 (accepted by the Whisper API)
        cmd = [
            "ffmpeg",
            "-i",
            input_path,
            "-vn",
            "-ac",
            "1",
            "-ar",
            str(sample_rate),
            "-c:a",
            "libmp3lame",
            "-b:a",
            bitrate,
            "-y",
            output_path,
        ]

        start_time = time.time()
        try:
            subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout, check=True)
        except subprocess.CalledProcessError as exc:
            _remove_partial(output_path)
            logger.error("FFmpeg compression failed: %s", exc.stderr)
            raise CompressionError(
                "Audio compression failed.",
                suggestion="Upload a smaller or already-compressed audio file.",
            ) from exc
        except subprocess.TimeoutExpired as exc:
            _remove_partial(output_path)
            logger.error("FFmpeg compression timed out after %ss", self.timeout)
            raise CompressionError("Audio compression timed out.") from exc
        except FileNotFoundError as exc:
            _remove_partial(output_path)
            raise CompressionUnavailableError() from exc

        elapsed = time.time() - start_time
        try:
            compressed_size = os.path.getsize(output_path)
        except OSError as exc:
            raise CompressionError("Audio compression produced no output.") from exc

        ratio = 1 - compressed_size / original_size if original_size else 0.0
        logger.info(
            "Compression complete: %.2fMB -> %.2fMB (%.1f%% smaller) in %.1fs",
            original_size / BYTES_PER_MB,
            compressed_size / BYTES_PER_MB,
            ratio * 100,
            elapsed,
        )
        return CompressionResult(
            output_path=output_path,
            original_size=original_size,
            compressed_size=compressed_size,
            compression_ratio=ratio,
            bitrate=bitrate,
            sample_rate=sample_rate,
            elapsed_seconds=elapsed,
        )


def _remove_partial(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to remove partial compression output %s: %s", path, exc)
