"""
Order construction and EIP-712 signing against the CTF exchanges.
"""

import logging
from typing import Any, Dict, Optional

from eth_account.messages import encode_typed_data

from polymarket_client.config import ContractConfig
from polymarket_client.constants import (
    EXCHANGE_DOMAIN_NAME,
    EXCHANGE_DOMAIN_VERSION,
)
from polymarket_client.eip712 import hash_signable, require_address, require_uint
from polymarket_client.exceptions import AuthenticationError, InvalidArgumentError
from polymarket_client.order_builder.helpers import (
    generate_salt,
    get_market_order_amounts,
    get_order_amounts,
    price_valid,
)
from polymarket_client.signer import Signer
from polymarket_client.types import (
    CreateOrderOptions,
    MarketOrderArgs,
    OrderArgs,
    OrderIntent,
    Side,
    SignatureType,
    SignedOrder,
)

logger = logging.getLogger(__name__)

ORDER_TYPES = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    "Order": [
        {"name": "salt", "type": "uint256"},
        {"name": "maker", "type": "address"},
        {"name": "signer", "type": "address"},
        {"name": "taker", "type": "address"},
        {"name": "tokenId", "type": "uint256"},
        {"name": "makerAmount", "type": "uint256"},
        {"name": "takerAmount", "type": "uint256"},
        {"name": "expiration", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "feeRateBps", "type": "uint256"},
        {"name": "side", "type": "uint8"},
        {"name": "signatureType", "type": "uint8"},
    ],
}


def build_order_typed_data(
    order: Dict[str, Any],
    chain_id: int,
    exchange: str,
) -> Dict[str, Any]:
    """Wrap an order struct in the exchange's EIP-712 envelope.

    Args:
        order: Order message keyed by the Order type's field names.
        chain_id: The chain ID.
        exchange: The verifying exchange contract.

    Returns:
        A typed-data dictionary for eth_account.
    """
    return {
        "types": ORDER_TYPES,
        "primaryType": "Order",
        "domain": {
            "name": EXCHANGE_DOMAIN_NAME,
            "version": EXCHANGE_DOMAIN_VERSION,
            "chainId": chain_id,
            "verifyingContract": exchange,
        },
        "message": order,
    }


def hash_order(order: Dict[str, Any], chain_id: int, exchange: str) -> bytes:
    """Compute the EIP-712 digest of an order."""
    signable = encode_typed_data(full_message=build_order_typed_data(order, chain_id, exchange))
    return hash_signable(signable)


class OrderBuilder:
    """Builds and signs orders for one wallet."""

    def __init__(
        self,
        signer: Optional[Signer],
        contracts: ContractConfig,
        signature_type: SignatureType = SignatureType.EOA,
        funder: Optional[str] = None,
    ) -> None:
        """Initialize the order builder.

        Args:
            signer: The EOA that signs orders.
            contracts: Contract addresses for the signer's chain.
            signature_type: How the exchange verifies signatures.
            funder: Wallet holding the funds; defaults to the signer.
        """
        self._signer = signer
        self._contracts = contracts
        self._signature_type = SignatureType(signature_type)
        self._funder = require_address(funder, "funder") if funder else None

    @property
    def maker(self) -> str:
        """Get the address that funds orders."""
        if self._funder:
            return self._funder
        return self._require_signer().address

    def _require_signer(self) -> Signer:
        if self._signer is None:
            raise AuthenticationError("Missing signer: cannot sign orders", required_level="L1")
        return self._signer

    def build_signed_order(self, intent: OrderIntent, neg_risk: bool = False) -> SignedOrder:
        """Sign an order expressed in base units.

        Args:
            intent: The order to sign. Its signature type is overridden by the
                builder's when the intent leaves it at EOA.
            neg_risk: Whether the token trades on the neg-risk exchange.

        Returns:
            The signed order.

        Raises:
            AuthenticationError: If no signer is configured.
            InvalidArgumentError: If any field is malformed.
        """
        signer = self._require_signer()

        try:
            token_id = int(intent.token_id)
        except (TypeError, ValueError):
            raise InvalidArgumentError(f"Invalid token_id: {intent.token_id!r}") from None

        signature_type = SignatureType(intent.signature_type or self._signature_type)
        exchange = self._contracts.exchange_for(neg_risk)
        salt = generate_salt()

        message = {
            "salt": salt,
            "maker": self.maker,
            "signer": signer.address,
            "taker": require_address(intent.taker, "taker"),
            "tokenId": require_uint(token_id, "token_id"),
            "makerAmount": require_uint(intent.maker_amount, "maker_amount"),
            "takerAmount": require_uint(intent.taker_amount, "taker_amount"),
            "expiration": require_uint(intent.expiration, "expiration"),
            "nonce": require_uint(intent.nonce, "nonce"),
            "feeRateBps": require_uint(intent.fee_rate_bps, "fee_rate_bps"),
            "side": int(Side(intent.side)),
            "signatureType": int(signature_type),
        }

        digest = hash_order(message, signer.chain_id, exchange)
        signature = signer.sign_hash(digest)

        logger.debug(
            "Signed order token=%s side=%s exchange=%s",
            intent.token_id,
            Side(intent.side).name,
            exchange,
        )

        return SignedOrder(
            salt=salt,
            maker=message["maker"],
            signer=message["signer"],
            taker=message["taker"],
            token_id=str(token_id),
            maker_amount=intent.maker_amount,
            taker_amount=intent.taker_amount,
            expiration=intent.expiration,
            nonce=intent.nonce,
            fee_rate_bps=intent.fee_rate_bps,
            side=Side(intent.side),
            signature_type=int(signature_type),
            signature="0x" + signature.hex(),
        )

    def create_order(self, args: OrderArgs, options: CreateOrderOptions) -> SignedOrder:
        """Build and sign a limit order.

        Args:
            args: Price, size and side of the order.
            options: Tick size and neg-risk flag of the market.

        Returns:
            The signed order.

        Raises:
            InvalidArgumentError: If the price is outside the tick range.
        """
        if not price_valid(args.price, options.tick_size):
            raise InvalidArgumentError(
                f"Price ({args.price}) must be between {options.tick_size} "
                f"and {1 - float(options.tick_size)}"
            )

        maker_amount, taker_amount = get_order_amounts(
            args.side, args.size, args.price, options.tick_size
        )
        intent = OrderIntent(
            token_id=args.token_id,
            maker_amount=maker_amount,
            taker_amount=taker_amount,
            side=args.side,
            fee_rate_bps=args.fee_rate_bps,
            nonce=args.nonce,
            expiration=args.expiration,
            taker=args.taker,
            signature_type=self._signature_type,
        )
        return self.build_signed_order(intent, neg_risk=options.neg_risk)

    def create_market_order(
        self,
        args: MarketOrderArgs,
        options: CreateOrderOptions,
    ) -> SignedOrder:
        """Build and sign a marketable order.

        Raises:
            InvalidArgumentError: If the price is outside the tick range.
        """
        if not price_valid(args.price, options.tick_size):
            raise InvalidArgumentError(
                f"Price ({args.price}) must be between {options.tick_size} "
                f"and {1 - float(options.tick_size)}"
            )

        maker_amount, taker_amount = get_market_order_amounts(
            args.side, args.amount, args.price, options.tick_size
        )
        intent = OrderIntent(
            token_id=args.token_id,
            maker_amount=maker_amount,
            taker_amount=taker_amount,
            side=args.side,
            fee_rate_bps=args.fee_rate_bps,
            nonce=args.nonce,
            taker=args.taker,
            signature_type=self._signature_type,
        )
        return self.build_signed_order(intent, neg_risk=options.neg_risk)
