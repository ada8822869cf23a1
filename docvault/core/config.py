from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Document Vault API"
    ENVIRONMENT: str = "development"
    API_V1_PREFIX: str = "/api/v1"
    PUBLIC_APP_URL: Optional[str] = None

    # Database
    DATABASE_URL: str
    DATABASE_ECHO: bool = False

    # JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    FOLDER_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Password hashing
    BCRYPT_ROUNDS: int = 12

    # Azure Blob Storage
    AZURE_STORAGE_CONNECTION_STRING: str
    DOCUMENTS_CONTAINER: str = "vault-documents"

    # Rate limiting (process-local)
    RATE_LIMIT_LOGIN_MAX: int = 5
    RATE_LIMIT_LOGIN_WINDOW_SECONDS: int = 15 * 60
    RATE_LIMIT_REGISTER_MAX: int = 3
    RATE_LIMIT_REGISTER_WINDOW_SECONDS: int = 60 * 60
    RATE_LIMIT_FOLDER_PASSWORD_MAX: int = 3
    RATE_LIMIT_FOLDER_PASSWORD_WINDOW_SECONDS: int = 5 * 60

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Folders
    MAX_FOLDER_DEPTH: int = 5

    # File Upload
    MAX_FILE_SIZE: int = 10 * 1024 * 1024
    ALLOWED_MIME_TYPES: List[str] = [
        "application/pdf",
        "image/png",
        "image/jpeg",
        "image/jpg",
        "text/plain",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ]
    SHARE_LINK_EXPIRE_DAYS: int = 30

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def max_file_size_mb(self) -> int:
        return self.MAX_FILE_SIZE // (1024 * 1024)

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
