import os

# Settings and the async engine are built at import time, so the test
# environment has to be in place before any aetherra module is imported.
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"
os.environ["LOG_TO_FILE"] = "false"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["OPENAI_API_KEY"] = ""
os.environ["DEEPSEEK_API_KEY"] = ""
