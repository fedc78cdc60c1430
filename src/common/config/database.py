from dataclasses import dataclass

from common.config.env import get_env_int, get_env_str


@dataclass(frozen=True)
class PostgresConfig:
    """Connection settings for the user-storage Postgres backend."""

    host: str
    port: int
    db_name: str
    user: str
    password: str
    pool_min_size: int = 2
    pool_max_size: int = 10
    command_timeout_seconds: int = 60

    @property
    def dsn(self) -> str:
        """Return the asyncpg DSN for this configuration."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.db_name}"

    @classmethod
    def from_env(cls) -> "PostgresConfig":
        """Load Postgres config from environment variables."""
        config = cls(
            host=get_env_str("DB_HOST", "localhost"),
            port=get_env_int("DB_PORT", 5432),
            db_name=get_env_str("DB_NAME", "user_storage"),
            user=get_env_str("DB_USER", "postgres"),
            password=get_env_str("DB_PASS", "postgres"),
            pool_min_size=get_env_int("DB_POOL_MIN_SIZE", 2),
            pool_max_size=get_env_int("DB_POOL_MAX_SIZE", 10),
            command_timeout_seconds=get_env_int("DB_COMMAND_TIMEOUT_SECONDS", 60),
        )
        if config.pool_min_size < 0 or config.pool_max_size < max(config.pool_min_size, 1):
            raise ValueError(
                "Invalid Postgres pool size: "
                f"min={config.pool_min_size}, max={config.pool_max_size}. "
                "DB_POOL_MAX_SIZE must be >= 1 and >= DB_POOL_MIN_SIZE."
            )
        return config
