"""Runtime configuration for Bulk Stage, read once at import time."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Every tunable of the service.

    Values come from the process environment first, then from a local ``.env``.
    Field aliases are the environment variable names.
    """

    # Application metadata
    app_name: str = Field(default="Bulk Stage", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./bulk.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Remote media store
    media_store_base_url: str | None = Field(default=None, alias="MEDIA_STORE_BASE_URL")
    media_store_api_key: str | None = Field(default=None, alias="MEDIA_STORE_API_KEY")
    media_store_timeout_seconds: float = Field(
        default=10.0,
        alias="MEDIA_STORE_TIMEOUT_SECONDS",
    )
    media_max_upload_bytes: int = Field(
        default=5 * 1024 * 1024,
        alias="MEDIA_MAX_UPLOAD_BYTES",
    )
    media_folder_avatars: str = Field(default="avatars", alias="MEDIA_FOLDER_AVATARS")
    media_folder_communities: str = Field(
        default="communities",
        alias="MEDIA_FOLDER_COMMUNITIES",
    )
    media_folder_posts: str = Field(default="posts", alias="MEDIA_FOLDER_POSTS")

    # Content rules
    premium_placeholder: str = Field(
        default="This content is available to premium subscribers only.",
        alias="PREMIUM_PLACEHOLDER",
    )
    search_min_length: int = Field(default=2, alias="SEARCH_MIN_LENGTH")
    search_result_limit: int = Field(default=5, alias="SEARCH_RESULT_LIMIT")
    listing_default_limit: int = Field(default=50, alias="LISTING_DEFAULT_LIMIT")

    # CORS
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Returns:
            Database URL compatible with synchronous drivers such as Alembic's.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def media_store_enabled(self) -> bool:
        """Whether a remote media store is configured."""
        return bool(self.media_store_base_url)


settings = Settings()  # type: ignore[call-arg]
