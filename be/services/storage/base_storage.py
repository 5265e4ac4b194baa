# services/storage/base_storage.py
from abc import ABC, abstractmethod


class BaseStorage(ABC):
    """Blob store contract. Keys are derived from content hashes; the engine never moves bytes itself."""

    @abstractmethod
    def presign_upload(self, key):
        """Return a time-limited URL the client PUTs the bytes to."""
        pass

    @abstractmethod
    def presign_download(self, key):
        """Return a time-limited URL the client GETs the bytes from."""
        pass

    @abstractmethod
    def exists(self, key):
        pass

    @abstractmethod
    def delete(self, key):
        pass

    @abstractmethod
    def list_keys(self):
        """Yield (key, last_modified) for every stored object; last_modified is a naive UTC datetime."""
        pass
