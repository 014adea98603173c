from sessionkeeper.models.user import User

__all__ = ["User"]
