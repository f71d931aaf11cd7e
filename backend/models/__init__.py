from backend.models.store import StoreEntry

__all__ = ["StoreEntry"]
