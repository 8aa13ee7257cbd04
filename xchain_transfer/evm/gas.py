"""Gas price strategies.

`Web3.py no longer support gas price strategies post London hard work <https://web3py.readthedocs.io/en/stable/gas_price.html>`_.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from web3 import Web3


class GasPriceMethod(enum.Enum):
    """What method we did use for setting the gas price."""

    #: Legacy chains
    legacy = "legacy"

    #: Post London hard work
    london = "london"


@dataclass
class GasPriceSuggestion:
    """Gas price details for building a transaction."""

    method: GasPriceMethod

    #: Non London hard fork chains
    legacy_gas_price: Optional[int] = None

    #: London hard fork chains
    base_fee: Optional[int] = None

    max_priority_fee_per_gas: Optional[int] = None

    max_fee_per_gas: Optional[int] = None

    def __repr__(self):
        return f"<Gas pricing method:{self.method.name} base:{self.base_fee} priority:{self.max_priority_fee_per_gas} max:{self.max_fee_per_gas} legacy:{self.legacy_gas_price}>"


#: Chains that refuse transactions below a minimum priority fee, chain id -> wei.
#:
#: Polygon has a minimum gas fee of 30 gwei to avoid spam, Amoy 25 gwei.
MIN_PRIORITY_FEE_PER_GAS = {
    137: 30_000_000_000,
    80002: 25_000_000_000,
}


def estimate_gas_price(web3: Web3) -> GasPriceSuggestion:
    """Get a gas price for a transaction from the latest block."""
    last_block = web3.eth.get_block("latest")
    base_fee = last_block.get("baseFeePerGas")

    if base_fee is None:
        return GasPriceSuggestion(method=GasPriceMethod.legacy, legacy_gas_price=web3.eth.gas_price)

    max_priority_fee_per_gas = max(MIN_PRIORITY_FEE_PER_GAS.get(web3.eth.chain_id, 0), web3.eth.max_priority_fee)
    max_fee_per_gas = max_priority_fee_per_gas + 2 * base_fee
    return GasPriceSuggestion(
        method=GasPriceMethod.london,
        base_fee=base_fee,
        max_priority_fee_per_gas=max_priority_fee_per_gas,
        max_fee_per_gas=max_fee_per_gas,
    )


def apply_gas(tx: dict, suggestion: GasPriceSuggestion) -> dict:
    """Apply gas fees to a raw transaction dict.

    :return:
        Mutated dict
    """
    assert isinstance(tx, dict), f"Expected tx to be dict, got {type(tx)}"

    if suggestion.method == GasPriceMethod.london:
        tx["maxFeePerGas"] = suggestion.max_fee_per_gas
        tx["maxPriorityFeePerGas"] = suggestion.max_priority_fee_per_gas
        # Cannot have both maxFeePerGas + maxPriorityFeePerGas and gasPrice
        tx.pop("gasPrice", None)
    else:
        tx["gasPrice"] = suggestion.legacy_gas_price

    return tx
