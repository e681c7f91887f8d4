"""Configuration constants for showscribe.

All constants are re-exported from config.py for convenience.
"""

# General defaults
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_TIMEOUT_SECONDS = 20
DEFAULT_USER_AGENT = "showscribe/1.0 (+https://github.com/showscribe/showscribe)"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

BYTES_PER_MB = 1024 * 1024

# OpenAI model defaults
DEFAULT_OPENAI_CHAT_MODEL = "gpt-4o"
DEFAULT_OPENAI_TRANSCRIPTION_MODEL = "whisper-1"
DEFAULT_OPENAI_TEMPERATURE = 0.7
DEFAULT_OPENAI_MAX_TOKENS = 1000

# Cost governance
DEFAULT_DAILY_COST_CAP_USD = 5.0
DEFAULT_COST_RETENTION_DAYS = 7
# Heuristic token estimation used before a chat call is dispatched
CHARS_PER_TOKEN_ESTIMATE = 4
COMPLETION_TOKEN_RATIO_ESTIMATE = 0.3

# Media size limits (MB)
DEFAULT_MAX_UPLOAD_SIZE_MB = 100
DEFAULT_SYNC_SIZE_THRESHOLD_MB = 20
DEFAULT_TRANSCRIPTION_SIZE_LIMIT_MB = 25

# Compression policy (MB)
DEFAULT_COMPRESS_UNCOMPRESSED_OVER_MB = 10
DEFAULT_COMPRESS_COMPRESSED_OVER_MB = 22
DEFAULT_FFMPEG_TIMEOUT_SECONDS = 300

# Compression tiers: (size strictly above MB, bitrate, sample rate Hz), most aggressive first
COMPRESSION_TIERS = (
    (100, "32k", 16000),
    (50, "48k", 22050),
)
COMPRESSION_DEFAULT_TIER = ("64k", 44100)

# Accepted upload MIME types
UNCOMPRESSED_AUDIO_TYPES = frozenset({"audio/wav", "audio/x-wav", "audio/wave"})
COMPRESSED_AUDIO_TYPES = frozenset({"audio/mpeg", "audio/mp3"})
UNCOMPRESSED_AUDIO_EXTENSIONS = frozenset({".wav"})
COMPRESSED_AUDIO_EXTENSIONS = frozenset({".mp3"})

# Rate limiting
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 600
DEFAULT_RATE_LIMIT_MAX_REQUESTS = 3
DEFAULT_RATE_LIMIT_TRUSTED_HOSTS = ("vercel.app",)

# Show-notes generation
DEFAULT_SLA_LATENCY_SECONDS = 120.0
SHOW_NOTES_SECTIONS = ("title", "summary", "highlights", "guest_bio", "social_captions")
SOCIAL_PLATFORMS = ("twitter", "linkedin", "instagram")
