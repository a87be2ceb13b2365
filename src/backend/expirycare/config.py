from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_NAME: str = "ExpiryCare Extraction"
    DEBUG: bool = False

    # AI enrichment collaborator (disabled when URL is empty)
    ENRICHMENT_URL: str = ""
    ENRICHMENT_PATH: str = "/extract"
    ENRICHMENT_API_KEY: str = ""
    ENRICHMENT_TIMEOUT_SECONDS: float = 8.0
    ENRICHMENT_CONNECT_TIMEOUT: float = 3.0
    ENRICHMENT_RETRY_ATTEMPTS: int = 2  # first call + one retry
    ENRICHMENT_RETRY_DELAY: float = 0.5

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
