"""Misc helpers."""

import asyncio
import functools
import logging
import os
from typing import Any, Callable, Optional

import coloredlogs


def setup_console_logging(
    default_log_level="warning",
    simplified_logging=False,
    std_out_log_level: Optional[int] = None,
) -> logging.Logger:
    """Set up coloured log output.

    - Helper function to have nicer logging output in scripts
    - Tune down some noisy dependency library logging
    - ``LOG_LEVEL`` environment variable overrides the default level

    :return:
        Root logger
    """

    level = os.environ.get("LOG_LEVEL", default_log_level).upper()
    numeric_level = getattr(logging, level, None)
    assert isinstance(numeric_level, int), f"No level: {level}"

    if not std_out_log_level:
        std_out_log_level = numeric_level

    if simplified_logging:
        fmt = "%(message)s"
    else:
        fmt = "%(asctime)s %(name)-44s %(message)s"
    date_fmt = "%H:%M:%S"

    coloredlogs.install(level=std_out_log_level, fmt=fmt, datefmt=date_fmt)

    # Mute noise
    logging.getLogger("web3.providers.HTTPProvider").setLevel(logging.WARNING)
    logging.getLogger("web3.RequestManager").setLevel(logging.WARNING)
    logging.getLogger("web3.manager.RequestManager").setLevel(logging.WARNING)
    logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    return logging.getLogger()


async def run_blocking(func: Callable, *args, **kwargs) -> Any:
    """Run a blocking call, like a web3.py JSON-RPC request, in the default executor.

    Keeps the event loop responsive while the call waits on the network.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
