"""Deployment configuration: target network, endpoints and local paths."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from stellar_sdk import Network as SdkNetwork


HOME_ENV = "STELLARVAULT_HOME"
DEFAULT_HOME = Path.home() / ".stellarvault"

TESTNET_HORIZON_URL = "https://horizon-testnet.stellar.org"
PUBLIC_HORIZON_URL = "https://horizon.stellar.org"
TESTNET_FRIENDBOT_URL = "https://friendbot.stellar.org"


class Network(str, Enum):
    TESTNET = "testnet"
    PUBLIC = "public"

    @property
    def passphrase(self) -> str:
        if self is Network.PUBLIC:
            return SdkNetwork.PUBLIC_NETWORK_PASSPHRASE
        return SdkNetwork.TESTNET_NETWORK_PASSPHRASE

    @property
    def default_horizon_url(self) -> str:
        if self is Network.PUBLIC:
            return PUBLIC_HORIZON_URL
        return TESTNET_HORIZON_URL


@dataclass
class LedgerConfig:
    network: Network = Network.TESTNET
    horizon_url: Optional[str] = None
    friendbot_url: Optional[str] = None
    base_fee: int = 100
    tx_timeout_seconds: int = 0     # 0 = no upper time bound
    http_timeout_seconds: float = 30.0
    fund_new_accounts: bool = True

    def __post_init__(self) -> None:
        self.network = Network(self.network)
        if self.horizon_url is None:
            self.horizon_url = self.network.default_horizon_url
        if self.friendbot_url is None and self.network is Network.TESTNET:
            self.friendbot_url = TESTNET_FRIENDBOT_URL
        if self.base_fee < 100:
            raise ValueError(f"base_fee must be at least 100 stroops, got {self.base_fee}")
        if self.tx_timeout_seconds < 0:
            raise ValueError("tx_timeout_seconds cannot be negative")

    @property
    def network_passphrase(self) -> str:
        return self.network.passphrase

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        return cls(
            network=Network(os.getenv("STELLARVAULT_NETWORK", Network.TESTNET.value).lower()),
            horizon_url=os.getenv("STELLARVAULT_HORIZON_URL") or None,
            friendbot_url=os.getenv("STELLARVAULT_FRIENDBOT_URL") or None,
            base_fee=int(os.getenv("STELLARVAULT_BASE_FEE", "100")),
            tx_timeout_seconds=int(os.getenv("STELLARVAULT_TX_TIMEOUT", "0")),
            fund_new_accounts=_env_flag("STELLARVAULT_FUND_ACCOUNTS", default=True),
        )


def home_dir() -> Path:
    override = os.getenv(HOME_ENV)
    return Path(override) if override else DEFAULT_HOME


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}
