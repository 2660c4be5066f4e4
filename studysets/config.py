import os

# Prefer DATABASE_URL (hosted Postgres in production). Fallback to local SQLite.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./studysets.db")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
QUIZ_MODEL = os.getenv("QUIZ_MODEL", "gpt-4o-2024-08-06")
VISION_MODEL = os.getenv("VISION_MODEL", "gpt-4o")
UTILITY_MODEL = os.getenv("UTILITY_MODEL", "gpt-3.5-turbo")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "120"))

# Soft limit: only reported, the in-flight call is never cancelled
QUIZ_GENERATION_TIMEOUT_SECONDS = float(os.getenv("QUIZ_GENERATION_TIMEOUT_SECONDS", str(5 * 60)))
DEFAULT_NUM_QUESTIONS = int(os.getenv("DEFAULT_NUM_QUESTIONS", "5"))
MAX_NUM_QUESTIONS = int(os.getenv("MAX_NUM_QUESTIONS", "50"))

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
SUBJECT_CACHE_TTL_SECONDS = int(os.getenv("SUBJECT_CACHE_TTL_SECONDS", str(24 * 3600)))

AI_GENERATION_RATE_LIMIT = os.getenv("AI_GENERATION_RATE_LIMIT", "5/minute")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
# JSON lines in production; set LOG_JSON=0 for readable console output while developing
LOG_JSON = os.getenv("LOG_JSON", "1") not in ("0", "false", "False")
DEFAULT_RATE_LIMITS = [r.strip() for r in os.getenv("DEFAULT_RATE_LIMITS", "1000/hour,100/minute").split(",") if r.strip()]
