import os


class Config:
    """Base configuration. Shared across all environments."""

    # --- Required ---
    SECRET_KEY = os.environ.get("SECRET_KEY")

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or "sqlite:///team_sheet.db"

    APP_BASE_URL = os.environ.get("APP_BASE_URL", "http://localhost:5000")

    # --- Record store ---
    # "sql" keeps leads in the app database; "firebase" talks to the
    # Firebase Realtime Database REST API.
    RECORD_STORE = os.environ.get("RECORD_STORE", "sql").lower()
    FIREBASE_DATABASE_URL = os.environ.get("FIREBASE_DATABASE_URL")
    FIREBASE_AUTH_TOKEN = os.environ.get("FIREBASE_AUTH_TOKEN")
    FIREBASE_TIMEOUT = int(os.environ.get("FIREBASE_TIMEOUT", 10))

    # --- Stripe (optional) ---
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_PUBLIC_KEY = os.environ.get("STRIPE_PUBLIC_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    STRIPE_CURRENCY = os.environ.get("STRIPE_CURRENCY", "usd")

    # --- Google Sheets (legacy import path) ---
    GOOGLE_SHEET_ID = os.environ.get("GOOGLE_SHEET_ID")
    GOOGLE_SHEETS_CLIENT_EMAIL = os.environ.get("GOOGLE_SHEETS_CLIENT_EMAIL")
    # Private keys pasted into env vars usually carry literal "\n"
    GOOGLE_SHEETS_PRIVATE_KEY = (
        os.environ.get("GOOGLE_SHEETS_PRIVATE_KEY") or ""
    ).replace("\\n", "\n") or None
    GOOGLE_SHEETS_TAB = os.environ.get("GOOGLE_SHEETS_TAB", "Leads")
    GOOGLE_MAPS_API_KEY = os.environ.get("GOOGLE_MAPS_API_KEY")

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # --- Session / cookies ---
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = "Lax"

    # --- WTF / CSRF ---
    WTF_CSRF_ENABLED = True

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "SECRET_KEY",
            "DATABASE_URL",
            "APP_BASE_URL",
        ]
        # Firebase URL is only required when it is the selected store
        if os.environ.get("RECORD_STORE", "sql").lower() == "firebase":
            required.append("FIREBASE_DATABASE_URL")
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development."""

    DEBUG = True
    SECRET_KEY = Config.SECRET_KEY or "dev-secret-key-not-for-production"
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False


class TestConfig(Config):
    """Testing — in-memory SQLite, CSRF disabled."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RECORD_STORE = "sql"
    FIREBASE_DATABASE_URL = None
    FIREBASE_AUTH_TOKEN = None
    STRIPE_SECRET_KEY = "sk_test_fake"
    STRIPE_PUBLIC_KEY = "pk_test_fake"
    STRIPE_WEBHOOK_SECRET = "whsec_test_fake"
    GOOGLE_SHEET_ID = "sheet_test_fake"
    GOOGLE_SHEETS_CLIENT_EMAIL = "sheets@test.iam.gserviceaccount.com"
    GOOGLE_SHEETS_PRIVATE_KEY = "fake-key"
    GOOGLE_MAPS_API_KEY = "maps_test_fake"
    APP_BASE_URL = "http://localhost:5000"
    WTF_CSRF_ENABLED = False  # disable CSRF for test requests
    RATELIMIT_ENABLED = False  # disable rate limiting in tests
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    SERVER_NAME = "localhost"

    @staticmethod
    def validate():
        """Skip validation in test mode — everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
