"""
Chain and client configuration.
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional

from polymarket_client.constants import (
    AMOY,
    DEFAULT_CLOB_HOST,
    DEFAULT_GAMMA_HOST,
    DEFAULT_RELAYER_HOST,
    DEFAULT_TIMEOUT,
    DEFAULT_WS_HOST,
    POLYGON,
)
from polymarket_client.exceptions import InvalidArgumentError


@dataclass(frozen=True)
class ContractConfig:
    """Contract addresses for one chain."""

    chain_id: int
    exchange: str
    neg_risk_exchange: str
    collateral: str
    conditional_tokens: str
    neg_risk_adapter: str

    def exchange_for(self, neg_risk: bool) -> str:
        """Get the exchange that verifies orders for a market."""
        return self.neg_risk_exchange if neg_risk else self.exchange


CONTRACT_CONFIGS: Dict[int, ContractConfig] = {
    POLYGON: ContractConfig(
        chain_id=POLYGON,
        exchange="0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E",
        neg_risk_exchange="0xC5d563A36AE78145C45a50134d48A1215220f80a",
        collateral="0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174",
        conditional_tokens="0x4D97DCd97eC945f40cF65F87097ACe5EA0476045",
        neg_risk_adapter="0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296",
    ),
    AMOY: ContractConfig(
        chain_id=AMOY,
        exchange="0xdFE02Eb6733538f8Ea35D585af8DE5958AD99E40",
        neg_risk_exchange="0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296",
        collateral="0x9c4e1703476e875070ee25b56a58b008cfb8fa78",
        conditional_tokens="0x69308FB512518e39F9b16112fA8d994F4e2Bf8bB",
        neg_risk_adapter="0xd91E80cF2E7be2e162c6513ceD06f1dD0dA35296",
    ),
}


def get_contract_config(chain_id: int) -> ContractConfig:
    """Get the contract configuration for a chain.

    Args:
        chain_id: The chain ID.

    Returns:
        The contract configuration.

    Raises:
        InvalidArgumentError: If the chain is not supported.
    """
    config = CONTRACT_CONFIGS.get(chain_id)
    if config is None:
        raise InvalidArgumentError(f"Unsupported chain ID: {chain_id}")
    return config


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name)
    return value or None


@dataclass
class ClientConfig:
    """Settings shared by the CLOB, relayer, gamma and WebSocket clients."""

    clob_host: str = DEFAULT_CLOB_HOST
    gamma_host: str = DEFAULT_GAMMA_HOST
    ws_host: str = DEFAULT_WS_HOST
    relayer_host: str = DEFAULT_RELAYER_HOST
    chain_id: int = POLYGON
    timeout: float = DEFAULT_TIMEOUT
    private_key: Optional[str] = None
    funder: Optional[str] = None
    signature_type: int = 0
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    api_passphrase: Optional[str] = None
    builder_api_key: Optional[str] = None
    builder_secret: Optional[str] = None
    builder_passphrase: Optional[str] = None
    rpc_url: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"ClientConfig(clob_host={self.clob_host!r}, chain_id={self.chain_id}, "
            f"has_private_key={self.private_key is not None}, "
            f"has_api_creds={self.api_key is not None}, "
            f"has_builder_creds={self.builder_api_key is not None})"
        )

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "ClientConfig":
        """Build a configuration from POLYMARKET_* environment variables.

        Args:
            dotenv: Whether to load a .env file from the working directory first.

        Returns:
            The configuration, with defaults for anything unset.

        Raises:
            InvalidArgumentError: If a numeric variable cannot be parsed.
        """
        if dotenv:
            from dotenv import load_dotenv

            load_dotenv()

        try:
            chain_id = int(_env("POLYMARKET_CHAIN_ID") or POLYGON)
            signature_type = int(_env("POLYMARKET_SIGNATURE_TYPE") or 0)
            timeout = float(_env("POLYMARKET_TIMEOUT") or DEFAULT_TIMEOUT)
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid numeric environment value: {e}") from e

        return cls(
            clob_host=_env("POLYMARKET_CLOB_HOST") or DEFAULT_CLOB_HOST,
            gamma_host=_env("POLYMARKET_GAMMA_HOST") or DEFAULT_GAMMA_HOST,
            ws_host=_env("POLYMARKET_WS_HOST") or DEFAULT_WS_HOST,
            relayer_host=_env("POLYMARKET_RELAYER_HOST") or DEFAULT_RELAYER_HOST,
            chain_id=chain_id,
            timeout=timeout,
            private_key=_env("POLYMARKET_PRIVATE_KEY"),
            funder=_env("POLYMARKET_FUNDER"),
            signature_type=signature_type,
            api_key=_env("POLYMARKET_API_KEY"),
            api_secret=_env("POLYMARKET_API_SECRET"),
            api_passphrase=_env("POLYMARKET_API_PASSPHRASE"),
            builder_api_key=_env("POLYMARKET_BUILDER_API_KEY"),
            builder_secret=_env("POLYMARKET_BUILDER_SECRET"),
            builder_passphrase=_env("POLYMARKET_BUILDER_PASSPHRASE"),
            rpc_url=_env("POLYMARKET_RPC_URL"),
        )
