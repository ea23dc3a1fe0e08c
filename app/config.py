import os

class BaseConfig:
    JSON_SORT_KEYS = False
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "*")
    RATELIMIT_STORAGE_URL = os.getenv("RATELIMIT_STORAGE_URL", "memory://")
    ORDER_LIMIT_PER_IP = os.getenv("ORDER_LIMIT_PER_IP", "20 per hour")
    SEARCH_LIMIT_PER_IP = os.getenv("SEARCH_LIMIT_PER_IP", "120 per minute")
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-insecure-jwt-key")
    ACCESS_TOKEN_LIFETIME_MIN = int(os.getenv("ACCESS_TOKEN_LIFETIME_MIN", 15))
    REFRESH_TOKEN_LIFETIME_DAYS = int(os.getenv("REFRESH_TOKEN_LIFETIME_DAYS", 30))
    OTEL_SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "nearcart-backend")
    OTEL_EXPORTER_OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4318/v1/traces")
    OTEL_CONSOLE_EXPORT = os.getenv("OTEL_CONSOLE_EXPORT", "0") == "1"

    # Proximity search
    SEARCH_RADIUS_KM = float(os.getenv("SEARCH_RADIUS_KM", 10))
    NEARBY_RADIUS_KM = float(os.getenv("NEARBY_RADIUS_KM", 7))
    MAX_RADIUS_KM = float(os.getenv("MAX_RADIUS_KM", 50))
    DELIVERY_BASE_MINUTES = int(os.getenv("DELIVERY_BASE_MINUTES", 10))
    DELIVERY_SPEED_KMPH = float(os.getenv("DELIVERY_SPEED_KMPH", 20))

    # Checkout
    MAX_CART_LINES = int(os.getenv("MAX_CART_LINES", 100))
    DELIVERY_RADIUS_KM = float(os.getenv("DELIVERY_RADIUS_KM", 10))

class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-insecure-key")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///dev.db")

class TestingConfig(BaseConfig):
    TESTING = True
    SECRET_KEY = "test-key"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    RATELIMIT_ENABLED = os.getenv("RATELIMIT_ENABLED", "1") == "1"

class ProductionConfig(BaseConfig):
    DEBUG = False
    TESTING = False
    SECRET_KEY = os.getenv("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL")

    @staticmethod
    def validate():
        missing = []
        if not os.getenv("SECRET_KEY"):
            missing.append("SECRET_KEY")
        if not os.getenv("DATABASE_URL"):
            missing.append("DATABASE_URL")
        if not os.getenv("JWT_SECRET"):
            missing.append("JWT_SECRET")
        if missing:
            raise RuntimeError(
                f"Missing required env vars in production: {', '.join(missing)}"
            )

def get_config_class():
    env = os.getenv("APP_ENV", "development").lower()
    if env == "production":
        ProductionConfig.validate()
        return ProductionConfig
    if env == "testing":
        return TestingConfig
    return DevelopmentConfig
