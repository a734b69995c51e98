"""Agent-side tools for remote monitoring and management: command and path vetting, safe archives, mTLS, service control and release handling."""

__version__ = "0.1.0"