from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Booking Intake Service"

    # Server
    PORT: int = 3000
    ENVIRONMENT: str = "development"
    STATIC_DIR: str = "public"

    # Storage
    DB_PATH: str = "bookings.db"
    BACKUP_PATH: str = "bookings_backup.db"
    BACKUP_INTERVAL_SECONDS: float = 3600

    # Pricing (per selected subject)
    UNIT_PRICE: int = 300

    # Notifications
    EMAIL_NOTIFICATIONS_ENABLED: bool = False
    OWNER_EMAIL: str = ""

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
