"""Agent relay configuration — loaded from environment / .env file."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="RELAY_", extra="ignore")

    env: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Relay server (WebSocket + HTTP)
    host: str = "127.0.0.1"
    port: int = 3789
    cors_origins: list[str] = ["*"]

    # Events kept for clients that connect late
    replay_buffer_size: int = 50

    # Agent host process
    agent_host: str = "127.0.0.1"
    agent_port: int = 3790
    agent_auto_connect: bool = True  # connect to the agent host on startup
    agent_request_timeout: float = 60.0

    @property
    def agent_ws_url(self) -> str:
        # Host may bind to 0.0.0.0 but we connect via localhost
        host = "127.0.0.1" if self.agent_host == "0.0.0.0" else self.agent_host
        return f"ws://{host}:{self.agent_port}"


settings = Settings()
