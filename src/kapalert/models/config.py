"""Configuration models for Kapalert.

KapacitorConfig holds the connection settings of a Kapacitor instance.
"""

from __future__ import annotations

import os

from pydantic import BaseModel

ENV_URL = "KAPALERT_URL"
ENV_USERNAME = "KAPALERT_USERNAME"
ENV_PASSWORD = "KAPALERT_PASSWORD"
ENV_TIMEOUT = "KAPALERT_TIMEOUT"

DEFAULT_URL = "http://localhost:9092"


class KapacitorConfig(BaseModel):
    """Connection settings for one Kapacitor instance."""

    url: str = DEFAULT_URL
    username: str = ""
    password: str = ""
    timeout: float = 30.0
    page_size: int = 100

    @classmethod
    def from_env(cls, **overrides: object) -> KapacitorConfig:
        """Build a config from KAPALERT_* environment variables.

        Keyword overrides that are not None win over the environment.
        """
        values: dict = {
            "url": os.environ.get(ENV_URL, DEFAULT_URL),
            "username": os.environ.get(ENV_USERNAME, ""),
            "password": os.environ.get(ENV_PASSWORD, ""),
        }
        timeout = os.environ.get(ENV_TIMEOUT)
        if timeout:
            values["timeout"] = float(timeout)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
