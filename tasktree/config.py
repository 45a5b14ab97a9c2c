from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    base_url: str = "http://localhost:8000"
    database_url: str = "postgresql+psycopg://app:app@db:5432/app"
    redis_url: str = "redis://redis:6379/0"
    redis_socket_timeout_seconds: float = 0.5

    # create tables on startup (no migration tool ships with this service)
    db_create_all: bool = True

    jwt_secret: str = "dev-secret-change-me"
    jwt_issuer: str = "tasktree-api"
    jwt_audience: str = "tasktree-api"
    jwt_expires_minutes: int = 60

    magic_link_expires_minutes: int = 15
    magic_link_pepper: str = "dev-pepper-change-me"

    # signing up with this invite code creates a new root org owned by the user
    owner_master_code: str = "1001"
    org_invite_code_length: int = 6

    # comma separated
    cors_allow_origins: str = "http://localhost:4200"

    log_level: str = "INFO"
    log_json: bool = False

    audit_page_size: int = 50
    audit_max_page_size: int = 200

    # rate limiting (redis)
    rate_limit_enabled: bool = True
    rate_limit_auth_register_per_min: int = 10
    rate_limit_auth_request_link_per_min: int = 20
    rate_limit_auth_redeem_per_min: int = 30

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]

settings = Settings()
