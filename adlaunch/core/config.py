# adlaunch/core/config.py
"""
Application configuration - loads from environment variables.
Single source of truth for all settings.
"""
import os
from typing import Optional
from urllib.parse import quote_plus
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables FIRST
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_path = BASE_DIR / '.env'
load_dotenv(dotenv_path=env_path)

# ────────────────────────────────────────────
# Runtime
# ────────────────────────────────────────────
ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development").lower()
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# ────────────────────────────────────────────
# Upstream services
# ────────────────────────────────────────────
MANAGER_API_URL: str = os.getenv("MANAGER_API_URL", "")
INTERNAL_API_KEY: str = os.getenv("INTERNAL_API_KEY", "")

# ────────────────────────────────────────────
# Meta Marketing API
# ────────────────────────────────────────────
META_GRAPH_API_VERSION: str = os.getenv("META_GRAPH_API_VERSION", "v23.0")
META_SYSTEM_USER_TOKEN: str = os.getenv("META_SYSTEM_USER_TOKEN", "")
SANDBOX_AD_ACCOUNT_ID: Optional[str] = os.getenv("SANDBOX_AD_ACCOUNT_ID") or None

# ────────────────────────────────────────────
# Google Ads API
# ────────────────────────────────────────────
GOOGLE_ADS_API_VERSION: str = os.getenv("GOOGLE_ADS_API_VERSION", "v17")
GOOGLE_ADS_DEVELOPER_TOKEN: str = os.getenv("GOOGLE_ADS_DEVELOPER_TOKEN", "")
GOOGLE_ADS_CLIENT_ID: str = os.getenv("GOOGLE_ADS_CLIENT_ID", "")
GOOGLE_ADS_CLIENT_SECRET: str = os.getenv("GOOGLE_ADS_CLIENT_SECRET", "")
GOOGLE_ADS_REFRESH_TOKEN: str = os.getenv("GOOGLE_ADS_REFRESH_TOKEN", "")
GOOGLE_ADS_LOGIN_CUSTOMER_ID: Optional[str] = os.getenv("GOOGLE_ADS_LOGIN_CUSTOMER_ID") or None
GOOGLE_ADS_TARGET_ROAS: float = float(os.getenv("GOOGLE_ADS_TARGET_ROAS", "4.0"))

# ────────────────────────────────────────────
# Orchestration
# ────────────────────────────────────────────
MAX_STEP_RETRIES: int = int(os.getenv("MAX_STEP_RETRIES", "2"))
ERROR_MESSAGE_MAX_LENGTH: int = int(os.getenv("ERROR_MESSAGE_MAX_LENGTH", "1000"))
STEP_LEASE_SECONDS: int = int(os.getenv("STEP_LEASE_SECONDS", "300"))
HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "USD")

# ────────────────────────────────────────────
# Database Configuration
# ────────────────────────────────────────────
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_HOST = os.getenv("DB_HOST")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "adlaunch_db")
DATABASE_URL = os.getenv("DATABASE_URL")

# Build DATABASE_URL
if not DATABASE_URL:
    if DB_HOST:
        encoded_password = quote_plus(DB_PASSWORD)
        DATABASE_URL = f"postgresql://{DB_USER}:{encoded_password}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    else:
        DATABASE_URL = f"sqlite:///{BASE_DIR / 'adlaunch.db'}"

if not INTERNAL_API_KEY:
    import warnings
    warnings.warn("INTERNAL_API_KEY not set! Internal routes are unauthenticated.")


def use_sandbox_account() -> bool:
    """Sandbox ad account overrides user accounts outside production"""
    return ENVIRONMENT in ("development", "test") and bool(SANDBOX_AD_ACCOUNT_ID)


# ────────────────────────────────────────────
# Settings Class
# ────────────────────────────────────────────
class Settings:
    ENVIRONMENT: str = ENVIRONMENT
    DATABASE_URL: str = DATABASE_URL
    MANAGER_API_URL: str = MANAGER_API_URL
    INTERNAL_API_KEY: str = INTERNAL_API_KEY
    META_GRAPH_API_VERSION: str = META_GRAPH_API_VERSION
    META_SYSTEM_USER_TOKEN: str = META_SYSTEM_USER_TOKEN
    SANDBOX_AD_ACCOUNT_ID: Optional[str] = SANDBOX_AD_ACCOUNT_ID
    GOOGLE_ADS_API_VERSION: str = GOOGLE_ADS_API_VERSION
    GOOGLE_ADS_DEVELOPER_TOKEN: str = GOOGLE_ADS_DEVELOPER_TOKEN
    GOOGLE_ADS_LOGIN_CUSTOMER_ID: Optional[str] = GOOGLE_ADS_LOGIN_CUSTOMER_ID
    GOOGLE_ADS_TARGET_ROAS: float = GOOGLE_ADS_TARGET_ROAS
    MAX_STEP_RETRIES: int = MAX_STEP_RETRIES
    ERROR_MESSAGE_MAX_LENGTH: int = ERROR_MESSAGE_MAX_LENGTH
    STEP_LEASE_SECONDS: int = STEP_LEASE_SECONDS
    HTTP_TIMEOUT_SECONDS: float = HTTP_TIMEOUT_SECONDS
    DEFAULT_CURRENCY: str = DEFAULT_CURRENCY
    LOG_LEVEL: str = LOG_LEVEL

settings = Settings()
