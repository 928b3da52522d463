"""Core domain package for tgpilot.

Core contains the session lifecycle, event routing, normalization and command
dispatch without any Telegram or storage-specific code, keeping the business
logic portable.
"""

__version__ = "0.1.0"
