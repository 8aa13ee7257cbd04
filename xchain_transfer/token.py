"""Token references.

A token is either the native gas token of a chain or a contract deployed on it.
"""

from dataclasses import dataclass

from xchain_transfer.chain import ChainEndpoint

#: Marker used in place of a contract address for the native gas token
NATIVE = "native"


@dataclass(slots=True, frozen=True)
class TokenReference:
    """Token scoped to a chain."""

    chain: ChainEndpoint

    #: Contract address or :py:data:`NATIVE`
    address: str

    def __repr__(self):
        return f"<Token {self.address} on {self.chain.name}>"

    @property
    def is_native(self) -> bool:
        return self.address == NATIVE


def token_id(chain: ChainEndpoint, address: str) -> TokenReference:
    """Create a token reference.

    Example:

    .. code-block:: python

        avax = environment.get_chain("Avalanche")

        # Native AVAX
        token = token_id(avax, "native")

        # USDC on Avalanche Fuji
        token = token_id(avax, "0x5425890298aed601595a70ab815c96711a31bc65")
    """
    assert isinstance(chain, ChainEndpoint), f"Got {type(chain)}"
    assert address, "Token address missing"
    if address.lower() == NATIVE:
        return TokenReference(chain, NATIVE)
    return TokenReference(chain, address)
