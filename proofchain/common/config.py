# proofchain/common/config.py
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field


DEFAULT_BASE_URL = "https://keybase.io/_/api/1.0"

AUTH_EXPIRES_IN = 24 * 60 * 60            # one day
BINDING_EXPIRE_IN = 5 * 365 * 24 * 60 * 60  # five years


class ClientConfig(BaseModel):
    """
    Settings handed explicitly to the transport and everything built on it.
    There is no module-level mutable default; build one and pass it down.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = DEFAULT_BASE_URL
    host: str = "keybase.io"
    timeout: float = Field(30.0, gt=0)
    verify_tls: bool = True
    client_name: str = "proofchain python client"
    client_version: str = "0.1.0"
    auth_expires_in: int = Field(AUTH_EXPIRES_IN, gt=0)
    binding_expire_in: int = Field(BINDING_EXPIRE_IN, gt=0)
    key_dir: Optional[str] = None

    def command_url(self, command: str) -> str:
        return f"{self.base_url.rstrip('/')}/{command}.json"

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ClientConfig":
        load_dotenv(env_file)
        values = {}
        if os.getenv("PROOFCHAIN_BASE_URL"):
            values["base_url"] = os.getenv("PROOFCHAIN_BASE_URL")
        if os.getenv("PROOFCHAIN_HOST"):
            values["host"] = os.getenv("PROOFCHAIN_HOST")
        if os.getenv("PROOFCHAIN_TIMEOUT"):
            values["timeout"] = float(os.getenv("PROOFCHAIN_TIMEOUT"))
        if os.getenv("PROOFCHAIN_VERIFY_TLS"):
            values["verify_tls"] = os.getenv("PROOFCHAIN_VERIFY_TLS").lower() != "false"
        if os.getenv("PROOFCHAIN_KEY_DIR"):
            values["key_dir"] = os.path.expanduser(os.getenv("PROOFCHAIN_KEY_DIR"))
        return cls(**values)
