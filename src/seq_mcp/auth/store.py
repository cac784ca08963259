"""Abstract credential storage interface.

CredentialStore resolves a workspace name to a Seq API key. A workspace
is purely a client-side routing key; Seq itself has no such concept.
Implementations decide where keys come from (environment, file, ...).
"""

from abc import ABC, abstractmethod

DEFAULT_WORKSPACE = "default"


def normalize_workspace(workspace: str | None) -> str:
    """Normalize a workspace name for lookup and storage.

    None, empty and whitespace-only names map to the default workspace.
    Names are case-folded so "Production" and "PRODUCTION" are the same
    workspace.
    """
    if workspace is None or not workspace.strip():
        return DEFAULT_WORKSPACE
    return workspace.strip().casefold()


class CredentialStore(ABC):
    """Abstract interface for API key storage.

    One store is created per process and shared by every tool call, so
    implementations must allow get_api_key() to run concurrently with
    reload(). Readers see either the old or the new keys, never a mix.

    Example:
        class StaticCredentialStore(CredentialStore):
            def get_api_key(self, workspace):
                return "my-key"

            def reload(self):
                pass

        store = StaticCredentialStore()
        key = store.get_api_key("default")
    """

    @abstractmethod
    def get_api_key(self, workspace: str | None) -> str:
        """Get the API key for a workspace.

        Args:
            workspace: Workspace name (None or empty means "default").

        Returns:
            The API key.

        Raises:
            ConfigurationError: If no key can be resolved.
        """
        ...

    @abstractmethod
    def reload(self) -> None:
        """Re-read the backing source and swap in the new keys.

        Raises:
            Whatever the backing source raises; the store keeps its
            previous keys when reload fails.
        """
        ...

    def close(self) -> None:
        """Release background resources (optional override)."""
        pass

    def __enter__(self) -> "CredentialStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
