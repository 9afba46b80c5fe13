from .sql_store import ConquestStore

__all__ = ["ConquestStore"]
