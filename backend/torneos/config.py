import os
import tempfile

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./torneos.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    CORS_ORIGINS.extend(o.strip() for o in _extra.split(",") if o.strip())

# Per-tournament mutual exclusion (file locks work across worker processes)
TOURNAMENT_LOCK_DIR = os.getenv("TOURNAMENT_LOCK_DIR", os.path.join(tempfile.gettempdir(), "torneos-locks"))
TOURNAMENT_LOCK_TIMEOUT = float(os.getenv("TOURNAMENT_LOCK_TIMEOUT", "30"))

DEFAULT_MATCH_DURATION = int(os.getenv("DEFAULT_MATCH_DURATION", "60"))
