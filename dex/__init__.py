"""SimpleDEX - constant product exchange with pair registry and router."""

__version__ = "0.1.0"

from dex.exchange import Exchange, get_default_exchange  # noqa: E402

__all__ = ["Exchange", "get_default_exchange", "__version__"]
