"""Logging setup and amount helpers for scripts."""

import logging
import os
from decimal import Decimal
from urllib.parse import urlparse

import coloredlogs


def setup_console_logging(
    default_log_level="warning",
    simplified_logging=False,
) -> logging.Logger:
    """Set up coloured log output.

    - Level comes from ``LOG_LEVEL`` environment variable, falling back to ``default_log_level``
    - Tune down noisy dependency library logging

    :return:
        Root logger
    """
    level = os.environ.get("LOG_LEVEL", default_log_level).upper()
    numeric_level = getattr(logging, level, None)
    assert numeric_level, f"No log level: {level}"

    if simplified_logging:
        fmt = "%(message)s"
        date_fmt = "%H:%M:%S"
    else:
        fmt = "%(asctime)s %(name)-36s [%(threadName)s] %(message)s"
        date_fmt = "%Y-%m-%d %H:%M:%S"

    coloredlogs.install(level=numeric_level, fmt=fmt, datefmt=date_fmt)

    # Mute noise
    logging.getLogger("web3.providers.HTTPProvider").setLevel(logging.WARNING)
    logging.getLogger("web3.RequestManager").setLevel(logging.WARNING)
    logging.getLogger("web3.manager.RequestManager").setLevel(logging.WARNING)
    logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)
    logging.getLogger("pyrate_limiter").setLevel(logging.WARNING)
    return logging.getLogger()


def get_url_domain(url: str) -> str:
    """Redact URL so that only domain is displayed.

    Some RPC providers use the path as an API key.
    """
    parsed = urlparse(url)
    if parsed.port in (80, 443, None):
        return parsed.hostname
    return f"{parsed.hostname}:{parsed.port}"


def parse_units(value: str | Decimal, decimals: int) -> int:
    """Convert a human-readable amount to smallest units.

    ``parse_units("0.01", 6) == 10_000``

    :raise ValueError:
        More fractional digits than the token has.
    """
    raw = Decimal(value) * (Decimal(10) ** decimals)
    if raw != raw.to_integral_value():
        raise ValueError(f"{value} has more than {decimals} decimals")
    return int(raw)


def format_units(raw: int, decimals: int) -> Decimal:
    """Convert smallest units to a human-readable amount."""
    return Decimal(raw) / (Decimal(10) ** decimals)
