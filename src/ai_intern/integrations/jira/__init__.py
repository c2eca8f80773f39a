from .client import JIRAClient

__all__ = ["JIRAClient"]
