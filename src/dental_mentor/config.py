"""Application settings loaded from environment variables."""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration. All values come from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Gemini
    gemini_api_key: str = Field(default="")
    general_model: str = Field(default="gemini-2.5-pro")
    school_info_model: str = Field(default="gemini-2.5-flash")
    essay_feedback_model: str = Field(default="gemini-2.5-flash")
    interview_drill_model: str = Field(default="gemini-2.5-pro")
    volunteer_model: str = Field(default="gemini-2.5-pro")
    title_model: str = Field(default="gemini-2.0-flash")
    embedding_model: str = Field(default="models/text-embedding-004")
    max_tool_rounds: int = Field(default=6)

    # Supabase
    supabase_url: str = Field(default="")
    supabase_anon_key: str = Field(default="")
    supabase_service_role_key: str = Field(default="")
    supabase_resource_id: str = Field(default="dental-mentor-ai")
    storage_timeout: float = Field(default=30.0)

    # Retrieval
    retrieval_match_threshold: float = Field(default=0.3)
    retrieval_match_count: int = Field(default=15)

    # Reference documents
    school_sheet_id: str = Field(default="1pV1nLP0o8rhLlCH0qoZWVq67cgqQORN2hpjKo2NftKM")
    school_sheet_name: str = Field(default="Import Range Master Stats")
    faq_doc_id: str = Field(default="1uJRYo4FXtDzwQg8uW4zwaIY-2IrJwLsS1krOvqkAO7Y")
    interview_doc_id: str = Field(default="1VFXY90zNK92PWDFbHZtzmpK37punGFTMQb5LIfCOdV0")
    volunteer_doc_id: str = Field(default="1jgqy6PBaIS9vuBK0FHTGPcg_Azng3TKqif5G4DCVzYI")
    faq_cache_ttl: float = Field(default=600.0)
    document_cache_ttl: float = Field(default=300.0)

    # Citation patch, only valid with a runtime that saves its own assistant
    # replies. With the Gemini runtime it would patch the previous turn's reply.
    sources_patch_enabled: bool = Field(default=False)
    sources_patch_delay: float = Field(default=0.5)

    # HTTP
    cors_origins: str = Field(default="*")
    rate_limit: int = Field(default=50)
    rate_limit_window: int = Field(default=60)

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and (self.supabase_service_role_key or self.supabase_anon_key))


@lru_cache()
def get_settings() -> Settings:
    """Returns the process-wide settings instance"""
    return Settings()
