from .locks import KeyedLock
from .manager import SessionManager

__all__ = ["KeyedLock", "SessionManager"]
