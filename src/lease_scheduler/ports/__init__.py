from .store import IKeyValueStore

__all__ = ["IKeyValueStore"]
