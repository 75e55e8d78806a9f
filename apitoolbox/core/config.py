from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application configuration loaded from environment variables / .env file."""

    app_name: str = "API Toolbox"
    app_env: str = "development"
    app_port: int = 8000
    frontend_url: str = "http://localhost:3000"
    max_upload_size_mb: int = 10

    # Database (SQLite via aiosqlite for local dev)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./apitoolbox_dev.db",
        alias="DATABASE_URL",
    )

    # Pagination / sorting defaults for resource controllers
    items_per_page: int = Field(default=10, alias="ITEMS_PER_PAGE")
    max_items_per_page: int = Field(
        default=200, alias="MAX_ITEMS_PER_PAGE",
    )  # upper bound for the ?per_page= override
    default_sort_column: str = Field(default="created_at", alias="DEFAULT_SORT_COLUMN")
    default_sort_direction: str = Field(default="desc", alias="DEFAULT_SORT_DIRECTION")

    # JWT validation (issuing tokens is someone else's job)
    jwt_secret: str | None = Field(default=None, alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_user_claim: str = Field(default="sub", alias="JWT_USER_CLAIM")

    # Requests carrying this header with value "backend" come from the admin UI
    backend_header: str = Field(default="X-ENV", alias="BACKEND_HEADER")

    # File attachments
    upload_dir: str = Field(default="./storage/uploads", alias="UPLOAD_DIR")
    attachment_policy: str = Field(
        default="clear_on_absent", alias="ATTACHMENT_POLICY",
    )  # "clear_on_absent" | "explicit_clear"

    # Message-key overrides, e.g. {"record_created": "Created!"}
    messages: dict[str, str] = Field(default_factory=dict)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
    }

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def jwt_enabled(self) -> bool:
        """JWT auth is available only when a signing secret is configured."""
        return bool(self.jwt_secret)

settings = Settings()
