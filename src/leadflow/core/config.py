"""
Application configuration settings loaded from config.yaml
"""
import os
import yaml
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class DatabasePoolConfig(BaseModel):
    """Database connection pool configuration"""
    size: int = 10  # Number of connections to maintain
    max_overflow: int = 20  # Maximum overflow connections
    timeout: int = 30  # Seconds to wait for a connection
    recycle: int = 3600  # Seconds before recycling a connection
    echo: bool = False  # Log SQL queries


class DatabaseConfig(BaseModel):
    """Database configuration"""
    model_config = ConfigDict(populate_by_name=True)

    url_override: Optional[str] = Field(None, alias="url")  # e.g. sqlite:///./leadflow.db
    server: str = "localhost"
    user: str = "postgres"
    password: str = ""
    db: str = "leadflow"
    port: str = "5432"
    db_schema: str = Field("public", alias="schema")  # PostgreSQL schema name
    create_tables: bool = False  # Run metadata.create_all on startup
    pool: DatabasePoolConfig = DatabasePoolConfig()

    @property
    def url(self) -> str:
        """Construct database URL"""
        if self.url_override:
            return self.url_override
        return f"postgresql://{self.user}:{self.password}@{self.server}:{self.port}/{self.db}"

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class SecurityConfig(BaseModel):
    """Security configuration for bearer tokens issued by the identity provider"""
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60


class DispatchConfig(BaseModel):
    """Lead dispatch behaviour"""
    timezone: str = "America/Los_Angeles"  # Calendar used to compose appointment times
    auto_assign: bool = True  # Assign immediate leads to the next available closer
    transition_window_minutes: int = 45  # Verified scheduled leads enter the queue this early
    reminder_lead_minutes: int = 30  # Appointment reminder offset
    reminder_batch_size: int = 50
    transition_batch_size: int = 100


class NotificationConfig(BaseModel):
    """Push gateway configuration"""
    enabled: bool = False
    gateway_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: int = 10
    action_url: str = "/dashboard"


class Settings(BaseModel):
    """Application settings loaded from config.yaml"""

    # Project settings
    project_name: str = "LeadFlow Dispatch API"
    service_name: str = "LeadFlow App"
    version: str = "1.0.0"
    description: str = "Lead dispatch API: team-scoped lead pipeline with role-based permissions"
    api_v1_str: str = "/api/v1"

    # Database settings
    database: DatabaseConfig

    @property
    def DATABASE_URL(self) -> str:
        """Construct database URL"""
        return self.database.url

    # CORS settings
    backend_cors_origins: List[str] = []

    @field_validator("backend_cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, list):
            return v
        return []

    # Security settings
    security: SecurityConfig

    # Dispatch settings
    dispatch: DispatchConfig = DispatchConfig()

    # Push notification settings
    notifications: NotificationConfig = NotificationConfig()

    # Logging
    log_level: str = "INFO"


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config.yaml file. If None, looks for config.yaml in:
                    1. The LEADFLOW_CONFIG environment variable
                    2. Current directory
                    3. Project root (src/../config.yaml)

    Returns:
        Settings: Loaded and validated settings
    """
    if config_path is None:
        config_path = os.environ.get("LEADFLOW_CONFIG")

    if config_path is None:
        # Try current directory first
        current_dir = Path.cwd() / "config.yaml"
        if current_dir.exists():
            config_path = str(current_dir)
        else:
            # Try project root (assuming we're in src/leadflow/core/)
            project_root = Path(__file__).parent.parent.parent.parent / "config.yaml"
            if project_root.exists():
                config_path = str(project_root)
            else:
                raise FileNotFoundError(
                    "config.yaml not found. Copy config.example.yaml to config.yaml in the project root."
                )

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_file, "r") as f:
        config_data = yaml.safe_load(f)

    if config_data is None:
        raise ValueError("Configuration file is empty or invalid")

    return Settings(**config_data)


# Load settings on module import
settings = load_config()
