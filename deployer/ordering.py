"""
Deployment Order
Ordering table for artifacts whose contracts depend on each other
"""

from typing import Callable, Iterable, List, Sequence, TypeVar

T = TypeVar('T')


class DeploymentOrder:
    """
    Ranked names deploy first, in table order; everything else follows
    in lexicographic order.
    """

    def __init__(self, ranked_names: Sequence[str] = ()):
        self.ranked_names = list(ranked_names)
        self._ranks = {}
        for index, name in enumerate(self.ranked_names):
            # first occurrence wins
            self._ranks.setdefault(name, index)

    def rank(self, name: str) -> int:
        """Position in the table, or len(table) when unranked"""
        return self._ranks.get(name, len(self.ranked_names))

    def sort_key(self, name: str):
        # unranked names share the same rank, so the name breaks the tie
        return (self.rank(name), name)

    def sort_items(self, items: Iterable[T], key: Callable[[T], str]) -> List[T]:
        return sorted(items, key=lambda item: self.sort_key(key(item)))

    @classmethod
    def from_target_config(cls, target_config: dict) -> 'DeploymentOrder':
        return cls(target_config.get('order', []))
