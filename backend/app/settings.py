from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore",
    )

    app_name: str = "civic-relay"
    environment: str = Field(default="local", validation_alias=AliasChoices("ENVIRONMENT", "CIVIC_RELAY_ENVIRONMENT"))
    database_url: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/civic_relay",
        validation_alias=AliasChoices("DATABASE_URL", "CIVIC_RELAY_DATABASE_URL"),
    )
    site_url: str = Field(default="http://localhost:3000", validation_alias=AliasChoices("SITE_URL", "CIVIC_RELAY_SITE_URL"))
    admin_password: str | None = Field(default=None, validation_alias=AliasChoices("ADMIN_PASSWORD", "CIVIC_RELAY_ADMIN_PASSWORD"))
    automation_token: str | None = Field(default=None, validation_alias=AliasChoices("AUTOMATION_TOKEN", "CIVIC_RELAY_AUTOMATION_TOKEN"))

    # Outbound HTTP
    http_timeout_sec: float = Field(default=8.0, validation_alias=AliasChoices("HTTP_TIMEOUT_SEC", "CIVIC_RELAY_HTTP_TIMEOUT_SEC"))
    user_agent: str = Field(
        default="civic-relay/1.0 (news automation)",
        validation_alias=AliasChoices("USER_AGENT", "CIVIC_RELAY_USER_AGENT"),
    )

    # News sources
    news_index_url: str = Field(
        default="https://api.gdeltproject.org/api/v2/doc/doc",
        validation_alias=AliasChoices("NEWS_INDEX_URL", "CIVIC_RELAY_NEWS_INDEX_URL"),
    )
    news_language: str = Field(default="spanish", validation_alias=AliasChoices("NEWS_LANGUAGE", "CIVIC_RELAY_NEWS_LANGUAGE"))
    news_default_country: str = Field(default="CO", validation_alias=AliasChoices("NEWS_DEFAULT_COUNTRY", "CIVIC_RELAY_NEWS_DEFAULT_COUNTRY"))
    news_max_records: int = Field(default=25, validation_alias=AliasChoices("NEWS_MAX_RECORDS", "CIVIC_RELAY_NEWS_MAX_RECORDS"))
    news_feed_urls: list[str] = Field(default_factory=list, validation_alias=AliasChoices("NEWS_FEED_URLS", "CIVIC_RELAY_NEWS_FEED_URLS"))

    # Images
    commons_api_url: str = Field(
        default="https://commons.wikimedia.org/w/api.php",
        validation_alias=AliasChoices("COMMONS_API_URL", "CIVIC_RELAY_COMMONS_API_URL"),
    )

    # Consent invites
    invite_ttl_hours: int = Field(default=5, validation_alias=AliasChoices("INVITE_TTL_HOURS", "CIVIC_RELAY_INVITE_TTL_HOURS"))
    messaging_domain: str = Field(default="wa.me", validation_alias=AliasChoices("MESSAGING_DOMAIN", "CIVIC_RELAY_MESSAGING_DOMAIN"))
    phone_country_prefix: str = Field(default="57", validation_alias=AliasChoices("PHONE_COUNTRY_PREFIX", "CIVIC_RELAY_PHONE_COUNTRY_PREFIX"))

    # Completion backends (order is fixed: openai -> openrouter -> groq -> cerebras)
    generation_enabled: bool | None = Field(default=None, validation_alias=AliasChoices("OPENAI_ENABLED", "CIVIC_RELAY_GENERATION_ENABLED"))
    openai_api_key: str | None = Field(default=None, validation_alias=AliasChoices("OPENAI_API_KEY", "CIVIC_RELAY_OPENAI_API_KEY"))
    openai_model: str | None = Field(default=None, validation_alias=AliasChoices("OPENAI_MODEL", "CIVIC_RELAY_OPENAI_MODEL"))
    openai_base_url: str | None = Field(default=None, validation_alias=AliasChoices("OPENAI_BASE_URL", "CIVIC_RELAY_OPENAI_BASE_URL"))
    openrouter_api_key: str | None = Field(default=None, validation_alias=AliasChoices("OPENROUTER_API_KEY", "CIVIC_RELAY_OPENROUTER_API_KEY"))
    openrouter_model: str | None = Field(default=None, validation_alias=AliasChoices("OPENROUTER_MODEL", "CIVIC_RELAY_OPENROUTER_MODEL"))
    openrouter_base_url: str | None = Field(default=None, validation_alias=AliasChoices("OPENROUTER_BASE_URL", "CIVIC_RELAY_OPENROUTER_BASE_URL"))
    groq_api_key: str | None = Field(default=None, validation_alias=AliasChoices("GROQ_API_KEY", "CIVIC_RELAY_GROQ_API_KEY"))
    groq_model: str | None = Field(default=None, validation_alias=AliasChoices("GROQ_MODEL", "CIVIC_RELAY_GROQ_MODEL"))
    groq_base_url: str | None = Field(default=None, validation_alias=AliasChoices("GROQ_BASE_URL", "CIVIC_RELAY_GROQ_BASE_URL"))
    cerebras_api_key: str | None = Field(default=None, validation_alias=AliasChoices("CEREBRAS_API_KEY", "CIVIC_RELAY_CEREBRAS_API_KEY"))
    cerebras_model: str | None = Field(default=None, validation_alias=AliasChoices("CEREBRAS_MODEL", "CIVIC_RELAY_CEREBRAS_MODEL"))
    cerebras_base_url: str | None = Field(default=None, validation_alias=AliasChoices("CEREBRAS_BASE_URL", "CIVIC_RELAY_CEREBRAS_BASE_URL"))

    # Outbound workflow hook
    workflow_hook_enabled: bool = Field(default=False, validation_alias=AliasChoices("WORKFLOW_HOOK_ENABLED", "CIVIC_RELAY_WORKFLOW_HOOK_ENABLED"))
    workflow_hook_url: str | None = Field(default=None, validation_alias=AliasChoices("WORKFLOW_HOOK_URL", "CIVIC_RELAY_WORKFLOW_HOOK_URL"))
    workflow_hook_token: str | None = Field(default=None, validation_alias=AliasChoices("WORKFLOW_HOOK_TOKEN", "CIVIC_RELAY_WORKFLOW_HOOK_TOKEN"))

    @property
    def async_database_url(self) -> str:
        if self.database_url.startswith("postgresql+"):
            return self.database_url
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url

    @property
    def public_site_url(self) -> str:
        return self.site_url.strip().rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
