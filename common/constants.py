"""Project-wide constants (stream sizes, secret bounds, link codes)."""

STREAM_PIECE_SIZE_BYTES: int = 64 * 1024  # copy buffer for archive entries

SECRET_MIN_LENGTH: int = 6
SECRET_MAX_LENGTH: int = 100

ENVELOPE_CHUNK_SIZE_BYTES: int = 64 * 1024
ENVELOPE_SUFFIX: str = ".sealed"
ARCHIVE_SUFFIX: str = ".zip"

SHORTLINK_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
SHORTLINK_CODE_LENGTH: int = 10
SHORTLINK_MAX_ATTEMPTS: int = 5
SHORTLINK_PATH_PREFIX: str = "/d"
