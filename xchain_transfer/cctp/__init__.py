"""Circle CCTP V2 burn-and-mint USDC transfers.

- :py:mod:`xchain_transfer.cctp.transfer`: burn on the source chain

- :py:mod:`xchain_transfer.cctp.attestation`: wait for Circle's Iris signature

- :py:mod:`xchain_transfer.cctp.receive`: mint on the destination chain

- :py:mod:`xchain_transfer.cctp.protocol`: the above as a transfer protocol
"""
