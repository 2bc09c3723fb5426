import os
import re
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def parse_duration(value: str, default: timedelta = timedelta(days=7)) -> timedelta:
    """Parse expiry strings such as ``7d``, ``12h``, ``30m`` or plain seconds."""
    if not value:
        return default
    match = re.fullmatch(r"\s*(\d+)\s*([smhdw]?)\s*", str(value).lower())
    if not match:
        return default
    amount, unit = int(match.group(1)), match.group(2) or "s"
    units = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "w": "weeks"}
    return timedelta(**{units[unit]: amount})


def _flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
PORT = int(os.getenv("PORT", 5000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Database
DATABASE_URL = os.getenv("MONGODB_URI") or os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "idream")

# Auth settings
SECRET_KEY = os.getenv("JWT_SECRET", "supersecret")
ALGORITHM = "HS256"
JWT_EXPIRE = os.getenv("JWT_EXPIRE", "7d")
ACCESS_TOKEN_EXPIRE = parse_duration(JWT_EXPIRE)
OTP_EXPIRE_MINUTES = int(os.getenv("OTP_EXPIRE_MINUTES", 10))

# Bootstrap account created at startup when both are set
SUPERADMIN_EMAIL = os.getenv("SUPERADMIN_EMAIL")
SUPERADMIN_PASSWORD = os.getenv("SUPERADMIN_PASSWORD")
SUPERADMIN_PHONE = os.getenv("SUPERADMIN_PHONE", "+200000000000")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGIN", "*").split(",") if o.strip()]

# Public links used in previews
SITE_URL = os.getenv("SITE_URL", "http://localhost:3000").rstrip("/")
IMAGE_BASE_URL = os.getenv("IMAGE_BASE_URL", "http://localhost:5000").rstrip("/")

# AI chat
AI_PROVIDER = os.getenv("AI_PROVIDER", "openai")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
OPENAI_FALLBACK_MODEL = "gpt-3.5-turbo"
OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", 0.7))
OPENAI_MAX_TOKENS = int(os.getenv("OPENAI_MAX_TOKENS", 500))
AI_MAX_PRODUCTS = int(os.getenv("AI_MAX_PRODUCTS", 10))
AI_MAX_SHOPS = int(os.getenv("AI_MAX_SHOPS", 5))
AI_ENABLE_PRODUCT_SEARCH = _flag("AI_ENABLE_PRODUCT_SEARCH")
AI_ENABLE_SHOP_SEARCH = _flag("AI_ENABLE_SHOP_SEARCH")
