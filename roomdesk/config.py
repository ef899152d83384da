import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    APP_NAME: str = "White Grove Retreat"
    # Core settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development").lower()
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Database backing the table API
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./roomdesk.db")
    # Shared key for the table API (empty disables the check)
    API_KEY: str = os.getenv("API_KEY", "")

    # Gateway used by the dashboard session: "sql" (in-process) or "rest"
    GATEWAY_BACKEND: str = os.getenv("GATEWAY_BACKEND", "sql").lower()
    GATEWAY_URL: str = os.getenv("GATEWAY_URL", "http://localhost:8000")
    GATEWAY_API_KEY: str = os.getenv("GATEWAY_API_KEY", "")
    GATEWAY_TIMEOUT_SECONDS: float = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10"))

    # Refresh triggers
    REFRESH_INTERVAL_SECONDS: float = float(os.getenv("REFRESH_INTERVAL_SECONDS", "30"))
    FOREGROUND_REFRESH_DELAY_SECONDS: float = float(os.getenv("FOREGROUND_REFRESH_DELAY_SECONDS", "0.5"))
    TOGGLE_RECHECK_DELAY_SECONDS: float = float(os.getenv("TOGGLE_RECHECK_DELAY_SECONDS", "1.0"))
    AUTO_REFRESH: bool = os.getenv("AUTO_REFRESH", "true").lower() == "true"
    # Use the change feed when the gateway offers one; polling otherwise
    REALTIME_ENABLED: bool = os.getenv("REALTIME_ENABLED", "true").lower() == "true"

    # Startup
    DASHBOARD_ENABLED: bool = os.getenv("DASHBOARD_ENABLED", "true").lower() == "true"
    SEED_DEMO_DATA: bool = os.getenv("SEED_DEMO_DATA", "false").lower() == "true"

settings = Settings()
