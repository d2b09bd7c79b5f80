import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    JSON_SORT_KEYS = False
    APP_NAME = os.getenv("APP_NAME", "Framel")

    # Remote Framel REST API
    API_URL = os.getenv("API_URL", "http://localhost:5000/api").rstrip("/")
    API_TIMEOUT = float(os.getenv("API_TIMEOUT", "30"))

    # Firebase web API key (identity toolkit REST endpoints)
    FIREBASE_API_KEY = os.getenv("FIREBASE_API_KEY", "")

    # Storefront defaults (amounts in KES)
    DELIVERY_FEE = int(os.getenv("DELIVERY_FEE", "500"))
    ITEMS_PER_PAGE = int(os.getenv("ITEMS_PER_PAGE", "12"))
    MAX_CART_ITEMS = int(os.getenv("MAX_CART_ITEMS", "50"))

    # Comma-separated list
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

    APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT = int(os.getenv("APP_PORT", "3000"))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    API_URL = "http://api.test/api"
    FIREBASE_API_KEY = "test-key"
    DELIVERY_FEE = 500
