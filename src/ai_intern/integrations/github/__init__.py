from .client import GitHubRepositoryClient

__all__ = ["GitHubRepositoryClient"]
