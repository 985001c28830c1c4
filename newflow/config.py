"""
Runtime configuration for the notification agent, read once at startup
from environment variables.

  NEWFLOW_API_URL                 backend origin (default http://localhost:5000)
  NEWFLOW_TOKEN                   bearer token (the SPA's newflow_token)
  NEWFLOW_WS_URL                  push endpoint; derived from the API URL if unset
  NEWFLOW_LISTEN_PORT             local API port (default 8000)
  NEWFLOW_EXPIRY_SECONDS          auto-expiry delay (default 5)
  NEWFLOW_RECONNECT_INTERVAL      reconnect backoff base in seconds (default 1)
  NEWFLOW_MAX_RECONNECT_ATTEMPTS  reconnect cap (default 5)
  NEWFLOW_SOUND_FILE              alert sound asset
  NEWFLOW_ROLE                    role for local permission checks (default receptionist)
  NEWFLOW_LOG_LEVEL               DEBUG | INFO | WARNING | ERROR (default INFO)
"""
import os
from dataclasses import dataclass

from newflow.channel import notification_ws_url

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class AgentConfig:
    api_url: str = "http://localhost:5000"
    token: str = ""
    ws_url: str = ""
    listen_port: int = 8000
    expiry_seconds: float = 5.0
    reconnect_interval: float = 1.0
    max_reconnect_attempts: int = 5
    sound_file: str = "/notification-sound.mp3"
    role: str = "receptionist"
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.ws_url:
            self.ws_url = notification_ws_url(self.api_url)
        self.log_level = self.log_level.upper()
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"log level must be one of {_LOG_LEVELS}, got {self.log_level!r}")

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "AgentConfig":
        env = os.environ if env is None else env

        def _num(key: str, default, kind):
            raw = env.get(key, "")
            if not raw:
                return default
            try:
                value = kind(raw)
            except ValueError:
                raise ValueError(f"{key} must be a number, got {raw!r}") from None
            if value < 0:
                raise ValueError(f"{key} must not be negative")
            return value

        return cls(
            api_url=env.get("NEWFLOW_API_URL", "") or cls.api_url,
            token=env.get("NEWFLOW_TOKEN", ""),
            ws_url=env.get("NEWFLOW_WS_URL", ""),
            listen_port=_num("NEWFLOW_LISTEN_PORT", cls.listen_port, int),
            expiry_seconds=_num("NEWFLOW_EXPIRY_SECONDS", cls.expiry_seconds, float),
            reconnect_interval=_num("NEWFLOW_RECONNECT_INTERVAL", cls.reconnect_interval, float),
            max_reconnect_attempts=_num("NEWFLOW_MAX_RECONNECT_ATTEMPTS",
                                        cls.max_reconnect_attempts, int),
            sound_file=env.get("NEWFLOW_SOUND_FILE", "") or cls.sound_file,
            role=env.get("NEWFLOW_ROLE", "") or cls.role,
            log_level=env.get("NEWFLOW_LOG_LEVEL", "") or cls.log_level,
        )
