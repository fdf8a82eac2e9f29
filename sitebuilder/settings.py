from functools import lru_cache
from pathlib import Path
from typing import ClassVar, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    data_root: Path = Field(default=Path(__file__).resolve().parents[1] / "data")
    # Empty means "sqlite file under data_root"
    database_url: Optional[str] = Field(default=None)

    generation_mode: Literal["mock", "openai", "deepseek"] = Field(default="mock")

    # Model configurations
    openai_model: str = Field(default="gpt-4o-mini")
    deepseek_model: str = Field(default="deepseek-chat")
    openai_base_url: Optional[str] = Field(default=None)

    llm_semaphore: int = Field(default=2)
    generation_max_attempts: int = Field(default=3, ge=1, le=10)
    admin_api_key: Optional[str] = Field(default=None)

    # API Keys
    openai_api_key: Optional[str] = Field(default=None)
    deepseek_api_key: Optional[str] = Field(default=None)

    # Builder session defaults
    max_history_size: int = Field(default=50, ge=1)
    auto_save_enabled: bool = Field(default=True)
    auto_save_interval: int = Field(default=30, ge=1)  # seconds

    root_env: ClassVar[str] = str(Path(__file__).resolve().parents[1] / ".env")

    model_config = {
        "env_file": root_env,
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{self.data_root / 'sitebuilder.db'}"


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.data_root.mkdir(parents=True, exist_ok=True)
    return settings
