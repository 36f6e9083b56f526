"""chatstream: streaming response interpreter for a token-streamed chat backend."""

__version__ = "0.1.0"
