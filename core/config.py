import re

from pydantic import field_validator
from pydantic_settings import BaseSettings

DEFAULT_IGNORED_DEVICES = r"^(ram|loop|fd|(h|s|v|xv)d[a-z]|nvme\d+n\d+p)\d+$"

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    PORT: int = 9100
    HOST: str = "0.0.0.0"
    DEV: bool = False
    LOG_LEVEL: str = "INFO"

    # procfs mount point, overridable for fixtures or other mount namespaces
    PATH_PROCFS: str = "/proc"
    DISKSTATS_IGNORED_DEVICES: str = DEFAULT_IGNORED_DEVICES

    @field_validator("LOG_LEVEL")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"invalid log level {v!r}, must be one of {LOG_LEVELS}")
        return v

    @field_validator("DISKSTATS_IGNORED_DEVICES")
    @classmethod
    def check_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid ignored devices regexp {v!r}: {e}")
        return v


settings = Settings()
