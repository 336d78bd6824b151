"""Root conftest — shared test configuration."""

import os

# Ensure tests never reach a real database, mServer or payload directory
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("POHODA_BASE_URL", "http://pohoda.test")
os.environ.setdefault("POHODA_USERNAME", "api")
os.environ.setdefault("POHODA_PASSWORD", "secret")
os.environ.setdefault("POHODA_EXPORT_WORKER_ENABLED", "false")
os.environ.setdefault("POHODA_PAYLOAD_DIR", "")
