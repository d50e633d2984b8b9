"""Configuration settings for the SealBox bundling service."""

import os


DATABASE_PATH = os.environ.get("SEALBOX_DATABASE_PATH", "/app/data/sealbox.db")

SERVICE_HOST = os.environ.get("SEALBOX_HOST", "0.0.0.0")

SERVICE_PORT = int(os.environ.get("SEALBOX_PORT", "8000"))

UPLOAD_DIR = os.environ.get("SEALBOX_UPLOAD_DIR", "/app/data/uploads")

BUNDLE_DIR = os.environ.get("SEALBOX_BUNDLE_DIR", "/app/data/bundles")

PUBLIC_BASE_URL = os.environ.get("SEALBOX_PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")

OBJECT_STORE_URL = os.environ.get("SEALBOX_OBJECT_STORE_URL", "http://localhost:9000").rstrip("/")

OBJECT_STORE_BUCKET = os.environ.get("SEALBOX_OBJECT_STORE_BUCKET", "sealbox-bundles")

OBJECT_STORE_TIMEOUT_SECONDS = float(os.environ.get("SEALBOX_OBJECT_STORE_TIMEOUT", "300"))

BCRYPT_ROUNDS = int(os.environ.get("SEALBOX_BCRYPT_ROUNDS", "10"))

API_KEY_TTL_HOURS = int(os.environ.get("SEALBOX_API_KEY_TTL_HOURS", "72"))

CLAIM_TTL_SECONDS = int(os.environ.get("SEALBOX_CLAIM_TTL_SECONDS", "3600"))

API_KEY_PREFIX = "sbx_"
