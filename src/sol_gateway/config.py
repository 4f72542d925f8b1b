"""Configuration management using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DOCS_KEYS = {"docs", "documents", "document"}
ROADMAP_KEYS = {"roadmap", "road"}
TASKS_KEYS = {"tasks", "task", "tracker"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Notion configuration
    notion_key: str = Field(default="", validation_alias=AliasChoices("NOTION_KEY", "NOTION-KEY"))
    notion_version: str = Field(default="2022-06-28", alias="NOTION_VERSION")
    docs_database_id: str = Field(
        default="",
        validation_alias=AliasChoices("NOTION_DATABASE_ID", "DOCS_DATABASE_ID"),
    )
    roadmap_database_id: str = Field(default="", alias="ROADMAP_DATABASE_ID")
    tasks_database_id: str = Field(default="", alias="TASK_TRACKER_DATABASE_ID")
    people_cache_ttl: float = Field(default=900.0, alias="PEOPLE_CACHE_TTL")

    # Web search
    search_api_key: str = Field(default="", alias="SEARCH_API_KEY")

    # Server
    base_url: str = Field(default="", alias="BASE_URL")
    version: str = Field(default="v3.1.0", alias="SOL_VERSION")
    server_token: str = Field(default="", alias="SERVER_TOKEN")
    port: int = Field(default=3000, alias="PORT")
    files_dir: Path = Field(default=Path("public/files"), alias="FILES_DIR")
    debug: bool = Field(default=False, alias="SOL_DEBUG")

    @property
    def notion_configured(self) -> bool:
        return bool(
            self.notion_key
            and (self.docs_database_id or self.roadmap_database_id or self.tasks_database_id)
        )

    def database_id_for(self, key: str | None) -> str:
        """Map a logical database key to its Notion database id.

        Unknown or empty keys fall back to docs, then tasks, then roadmap.
        """
        key = (key or "").strip().lower()
        if key in DOCS_KEYS:
            return self.docs_database_id
        if key in ROADMAP_KEYS:
            return self.roadmap_database_id
        if key in TASKS_KEYS:
            return self.tasks_database_id
        return self.docs_database_id or self.tasks_database_id or self.roadmap_database_id


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
