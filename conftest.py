import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUDIT_SERVICE_URL", "")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "false")
os.environ.setdefault("SEED_DEFAULT_RULES", "false")
