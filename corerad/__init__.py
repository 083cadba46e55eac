"""IPv6 NDP router advertisement checks, metrics, monitoring and link state watching."""

__version__ = "1.0.0"