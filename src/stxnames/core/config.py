from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from stxnames.constants import (
    DEFAULT_CONTRACT_ADDRESS,
    DEFAULT_CONTRACT_NAME,
    MAINNET_API_URL,
    TESTNET_API_URL,
)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {raw!r}") from e


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class IndexerConfig:
    """Configuration shared by the webhook server, the poller and the CLI."""

    contract_address: str = DEFAULT_CONTRACT_ADDRESS
    contract_name: str = DEFAULT_CONTRACT_NAME
    network: str = "mainnet"  # "mainnet" or "testnet"
    api_url: str = MAINNET_API_URL
    api_key: str | None = None
    database_path: str = "stxnames.duckdb"
    poll_interval_s: float = 30.0
    poll_limit: int = 50
    request_timeout_s: float = 15.0
    durable_dedup: bool = False  # back the seen-set with the ledger's tx_id columns
    cascade_history_on_release: bool = False  # drop history rows with the username
    host: str = "0.0.0.0"
    port: int = 3001

    @property
    def contract_id(self) -> str:
        """Fully qualified contract identifier (`<address>.<name>`)."""
        return f"{self.contract_address}.{self.contract_name}"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> IndexerConfig:
        """Build a config from environment variables (unset keys keep defaults)."""
        env = os.environ if env is None else env
        network = (env.get("NETWORK") or "mainnet").lower()
        default_api = TESTNET_API_URL if network == "testnet" else MAINNET_API_URL
        return cls(
            contract_address=env.get("CONTRACT_ADDRESS") or DEFAULT_CONTRACT_ADDRESS,
            contract_name=env.get("CONTRACT_NAME") or DEFAULT_CONTRACT_NAME,
            network=network,
            api_url=(env.get("STACKS_API_URL") or default_api).rstrip("/"),
            api_key=env.get("STACKS_API_KEY") or None,
            database_path=env.get("DATABASE_PATH") or "stxnames.duckdb",
            poll_interval_s=_env_float(env, "POLL_INTERVAL", 30.0),
            poll_limit=_env_int(env, "POLL_LIMIT", 50),
            request_timeout_s=_env_float(env, "REQUEST_TIMEOUT", 15.0),
            durable_dedup=_env_bool(env, "DURABLE_DEDUP", False),
            cascade_history_on_release=_env_bool(env, "CASCADE_ON_RELEASE", False),
            host=env.get("HOST") or "0.0.0.0",
            port=_env_int(env, "PORT", 3001),
        )
