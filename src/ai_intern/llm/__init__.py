"""Changeset generators."""

from .base import ChangeGenerator

# LiteLLMGenerator is imported from .litellm_generator where needed

__all__ = ["ChangeGenerator"]
