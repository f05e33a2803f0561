from .repository import Repository, SortOrder
from .results import QueryResult

__all__ = [
    "QueryResult",
    "Repository",
    "SortOrder",
]
