from typing import Generic, Iterator, List, Optional, Sequence, TypeVar

T = TypeVar('T')


class QueryResult(Generic[T]):
    """One page of query or scan results.

    Behaves like a read-only sequence of entities and additionally carries the
    store's ``count`` and the continuation token ``last_key`` (None once the
    result set is exhausted). Pass ``last_key`` back to the same call to fetch
    the next page.
    """

    def __init__(self, items: Sequence[T], count: Optional[int] = None, last_key: Optional[str] = None):
        self.items: List[T] = list(items)
        self.count = len(self.items) if count is None else count
        self.last_key = last_key

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __getitem__(self, index):
        return self.items[index]

    def __repr__(self) -> str:
        return f"QueryResult(count={self.count}, last_key={self.last_key!r}, items={self.items!r})"
