import os
from dotenv import load_dotenv

load_dotenv(dotenv_path=".env")

# Supabase (time entries are persisted there)
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")

# Clock synchronization
# HTTP endpoints whose Date header is trusted as the time authority, tried in order
TIME_AUTHORITIES = [
    url.strip()
    for url in os.getenv(
        "TIME_AUTHORITIES",
        "https://time.google.com,https://time.cloudflare.com,https://pool.ntp.org,https://time.nist.gov",
    ).split(",")
    if url.strip()
]
CLOCK_RESYNC_INTERVAL_SECONDS = float(os.getenv("CLOCK_RESYNC_INTERVAL_SECONDS", "300"))  # 5 minutes
CLOCK_PROBE_TIMEOUT_SECONDS = float(os.getenv("CLOCK_PROBE_TIMEOUT_SECONDS", "5"))

# Client reconciler polling
TIMER_SYNC_INTERVAL_SECONDS = float(os.getenv("TIMER_SYNC_INTERVAL_SECONDS", "2"))
TIMER_PAUSED_SYNC_INTERVAL_SECONDS = float(os.getenv("TIMER_PAUSED_SYNC_INTERVAL_SECONDS", "10"))

# CORS
CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
    if origin.strip()
]

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
