import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "shift_scheduling"),
}

# "mysql" or "memory" (in-process store, data lost on restart)
STORE_BACKEND = os.getenv("STORE_BACKEND", "mysql")

# Wall-clock timezone for bulk generation times and naive timestamps
TIMEZONE = os.getenv("TIMEZONE", "UTC")

# Seconds a write waits for another session editing the same employee
EMPLOYEE_LOCK_TIMEOUT = int(os.getenv("EMPLOYEE_LOCK_TIMEOUT", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
# Optional: also seed demo employees on startup
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
