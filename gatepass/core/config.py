import json
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator


class Settings(BaseSettings):
    # Application Settings
    app_name: str = Field(default="Visitor Gate Pass API", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    ENVIRONMENT: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=True, alias="DEBUG")

    # Server Configuration
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    # Database Configuration
    database_url: str = Field(default="sqlite:///./gatepass.db", alias="DATABASE_URL")

    # JWT Authentication (admin dashboard)
    JWT_SECRET: str = Field(default="your-super-secret-jwt-key-change-this-in-production", alias="JWT_SECRET")
    JWT_ALGORITHM: str = Field(default="HS256", alias="JWT_ALGORITHM")
    JWT_EXPIRATION_HOURS: int = Field(default=12, alias="JWT_EXPIRATION_HOURS")

    # Admin credential (single hard-coded account, no user table)
    admin_username: str = Field(default="admin", alias="ADMIN_USERNAME")
    admin_password: str = Field(default="1234", alias="ADMIN_PASSWORD")
    admin_password_hash: Optional[str] = Field(default=None, alias="ADMIN_PASSWORD_HASH")
    bcrypt_rounds: int = Field(default=12, alias="BCRYPT_ROUNDS")

    # AWS S3 Configuration
    aws_access_key_id: Optional[str] = Field(default=None, alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: Optional[str] = Field(default=None, alias="AWS_SECRET_ACCESS_KEY")
    aws_region: str = Field(default="ap-south-1", alias="AWS_REGION")
    aws_s3_bucket_name: str = Field(default="visitor-gate-passes", alias="AWS_S3_BUCKET_NAME")
    photo_folder: str = Field(default="visitor-photos", alias="PHOTO_FOLDER")
    pass_folder: str = Field(default="visitor-passes", alias="PASS_FOLDER")

    # Email Configuration
    email_enabled: bool = Field(default=False, alias="EMAIL_ENABLED")
    smtp_server: str = Field(default="smtp.gmail.com", alias="SMTP_SERVER")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_username: str = Field(default="", alias="SMTP_USERNAME")
    smtp_password: str = Field(default="", alias="SMTP_PASSWORD")
    email_from: str = Field(default="noreply@nktechunion.com", alias="EMAIL_FROM")
    email_sender_name: str = Field(default="NK Tech Union", alias="EMAIL_SENDER_NAME")

    # CORS Configuration
    API_CORS_ORIGINS: Optional[str] = Field(default=None, alias="API_CORS_ORIGINS")

    # Frontend/Backend URL Configuration
    frontend_base_url: str = Field(default="http://localhost:3000", alias="FRONTEND_BASE_URL")
    backend_base_url: str = Field(default="http://localhost:8000", alias="BACKEND_BASE_URL")

    # Visitor lifecycle
    visitor_code_prefix: str = Field(default="NK", alias="VISITOR_CODE_PREFIX")
    approval_token_ttl_hours: int = Field(default=24, alias="APPROVAL_TOKEN_TTL_HOURS")
    expire_pending_only: bool = Field(default=False, alias="EXPIRE_PENDING_ONLY")
    max_photo_bytes: int = Field(default=10485760, alias="MAX_PHOTO_BYTES")  # 10MB

    # Pass generation
    pass_browser_enabled: bool = Field(default=True, alias="PASS_BROWSER_ENABLED")
    pass_navigation_timeout_ms: int = Field(default=30000, alias="PASS_NAVIGATION_TIMEOUT_MS")
    pass_ready_timeout_ms: int = Field(default=15000, alias="PASS_READY_TIMEOUT_MS")
    pass_ready_selector: str = Field(default="#pass-ready", alias="PASS_READY_SELECTOR")
    photo_fetch_timeout_seconds: int = Field(default=10, alias="PHOTO_FETCH_TIMEOUT_SECONDS")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s", alias="LOG_FORMAT")

    @field_validator('LOG_LEVEL', mode='before')
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def cors_origins(self) -> List[str]:
        api_cors = self.API_CORS_ORIGINS
        if not api_cors:
            return [self.frontend_base_url]
        if api_cors.strip() == "*":
            return ["*"]
        try:
            return json.loads(api_cors)
        except ValueError:
            return [origin.strip() for origin in api_cors.split(',') if origin.strip()]

    @property
    def DATABASE_URL(self) -> str:
        # Heroku-style URLs still use the deprecated scheme name
        if self.database_url.startswith("postgres://"):
            return "postgresql+psycopg2://" + self.database_url[len("postgres://"):]
        return self.database_url

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def database_echo(self) -> bool:
        return self.debug and self.is_development and self.LOG_LEVEL == "DEBUG"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True


# Global settings instance
settings = Settings()
