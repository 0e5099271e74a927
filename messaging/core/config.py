import os
from pathlib import Path
from typing import Any, get_type_hints

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    SECRET: str
    DATABASE_URL: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    LOG_LEVEL: str = "INFO"

    # Object storage
    STORAGE_BACKEND: str = "local"  # "local" or "inline"
    STORAGE_ROOT: str = "./storage"
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    SIGNED_URL_TTL_SECONDS: int = 3600

    # Messaging limits
    MAX_ATTACHMENT_BYTES: int = 10 * 1024 * 1024
    MAX_ATTACHMENTS_PER_MESSAGE: int = 5
    MAX_MESSAGE_LENGTH: int = 5000
    MAX_GROUP_NAME_LENGTH: int = 100
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 100

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @classmethod
    def get_required_fields(cls) -> list[str]:
        """Get all required fields (those without default values)."""
        hints = get_type_hints(cls)
        return [
            field
            for field in hints
            if field in cls.model_fields and cls.model_fields[field].is_required()
        ]

    def __init__(self, **kwargs: Any):
        try:
            super().__init__(**kwargs)
        except ValidationError as e:
            env_file = Path(".env")
            missing_fields = [
                field for field in self.get_required_fields() if not os.getenv(field)
            ]

            if not missing_fields:
                raise

            fields_str = "\n".join(f"- {field}" for field in missing_fields)
            example_env = "\n".join(
                f"{field}=your_{field.lower()}_here" for field in missing_fields
            )
            if not env_file.exists():
                error_msg = (
                    f"\n\nError: Missing required environment variables!"
                    f"\nMissing variables:\n{fields_str}"
                    f"\n\nFor local development, create a .env file with:"
                    f"\n{example_env}"
                )
            else:
                error_msg = (
                    f"\n\nError: Missing required environment variables!"
                    f"\nMissing variables:\n{fields_str}"
                    f"\n\nPlease add these to your .env file or set as environment variables."
                )
            raise ValueError(error_msg) from e


settings = Settings()
