"""Encrypted client/relay circuit protocol over TCP: crypto, messages, stream helpers, relay and client."""

__version__ = "0.1.0"

__all__ = ["crypto", "protocol", "transport", "relay", "client"]