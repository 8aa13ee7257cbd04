"""Bundled contract ABIs.

Only the functions and events the transfer protocols call are included.
ABI files live in the ``abi/`` folder next to this module.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Union

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract


@lru_cache(maxsize=32)
def get_abi_by_filename(fname: str) -> dict:
    """Reads a embedded ABI file and returns it.

    Example::

        abi = get_abi_by_filename("cctp/TokenMessengerV2.json")["abi"]

    Loaded ABI files are cached in the process memory.

    :param fname:
        Path relative to the ``abi`` folder
    """
    here = Path(__file__).resolve().parent
    abi_path = here / "abi" / Path(fname)
    with open(abi_path, "rt", encoding="utf-8") as f:
        return json.load(f)


def get_deployed_contract(
    web3: Web3,
    fname: str,
    address: Union[HexAddress, str],
) -> Contract:
    """Get a Contract proxy object for a contract deployed at a specific address.

    :param web3:
        Web3 instance

    :param fname:
        ABI file name, see :py:func:`get_abi_by_filename`

    :param address:
        Address of the deployed contract

    :return:
        `web3.contract.Contract` proxy
    """
    assert isinstance(web3, Web3), f"Got {type(web3)} instead of Web3"
    assert address, f"get_deployed_contract() address was None"
    abi = get_abi_by_filename(fname)["abi"]
    return web3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
