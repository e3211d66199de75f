import os

# Settings are read at import time; give the app a deterministic environment
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("SITE_URL", "https://clubs.example.com")
os.environ.setdefault("INSTAGRAM_APP_ID", "test-app-id")
os.environ.setdefault("INSTAGRAM_APP_SECRET", "test-app-secret")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DATABASE_URL", "sqlite://")
