"""xchain_transfer package root.

Move tokens between blockchains: initiate on the source chain,
wait for the attestation, complete on the destination chain.

See :py:mod:`xchain_transfer.orchestrator` to get started.
"""

import sys

#: Minimum required Python version to run this package
MIN_PYTHON_VERSION = (3, 10)


def _check_python_version():
    """Try early abort if the Python version is too old."""
    if sys.version_info < MIN_PYTHON_VERSION:
        raise RuntimeError(f"xchain-transfer needs Python {MIN_PYTHON_VERSION[0]}.{MIN_PYTHON_VERSION[1]} or later")


_check_python_version()
