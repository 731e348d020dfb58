"""Agent memory tooling: embedding providers, client config installers, skill promotion and the dream pass."""

__version__ = "0.1.0"
__all__ = ["dream", "embedding", "hooks", "installer", "promotion"]