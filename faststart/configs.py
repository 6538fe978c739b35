from pydantic import Field
from pydantic_settings import BaseSettings

from faststart.const import DEFAULT_CHUNK_SIZE


class Settings(BaseSettings):
    api_password: str | None = None  # The password for protecting the API endpoints.
    log_level: str = "INFO"  # The logging level to use.
    remove_free_atoms: bool = True  # Whether to drop free boxes even when moov is already in front.
    chunk_size: int = Field(DEFAULT_CHUNK_SIZE, gt=0)  # Bytes copied per read when streaming boxes to the output.
    output_progress_log: bool = False  # Whether to write copy progress to the log.

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
