import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as teamnest.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "teamnest.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "teamnest_session"

    # Server-side bound for sessions without "remember me" (cookie itself is a browser-session cookie)
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout, only applied to non-remembered sessions
    IDLE_TIMEOUT_SECONDS = 2 * 60 * 60

    # "Remember me": 30 days
    REMEMBER_ME_SECONDS = 30 * 24 * 60 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Strict"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Only honour X-Forwarded-For when running behind a reverse proxy we control
    TRUST_PROXY = os.getenv("TRUST_PROXY", "false").lower() == "true"

    # Password hashing cost
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # Brute-force protection (per source address)
    LOGIN_FREE_ATTEMPTS = 5             # delay starts once this many failures are recorded
    LOGIN_BASE_DELAY_SECONDS = 5        # 5s, 10s, 20s, 40s, 80s ...
    LOGIN_LOCK_THRESHOLD = 10
    LOCKOUT_MINUTES = 30

    # Fixed window limit for the auth endpoints
    AUTH_RATE_WINDOW_SECONDS = 15 * 60
    AUTH_RATE_MAX_REQUESTS = 300

    # Looser fixed window over the project API
    API_RATE_WINDOW_SECONDS = 15 * 60
    API_RATE_MAX_REQUESTS = 1000

    # Join requests
    JOIN_REJECTION_COOLDOWN_DAYS = 30

    # Basic app settings
    DEBUG = False
