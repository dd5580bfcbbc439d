"""
Merge Resolver - fold the four stores into one slug-keyed view.

Precedence, highest first:
1. project + split   (.roo/modes/*.yaml)
2. project + legacy  (.roomodes)
3. global  + split
4. global  + legacy

For each slug the whole record from the highest-precedence store wins.
Lower-precedence records with the same slug are discarded; fields are
never merged across stores.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from modecfg.core.config import get_logger
from modecfg.core.types import Diagnostic, Mode, Severity
from modecfg.storage.stores import StoreListing, StoreSet

logger = get_logger("storage.resolver")


class MergedView(Mapping[str, Mode]):
    """Immutable slug -> Mode mapping; rebuilt as a whole, never patched."""

    def __init__(self, modes: Iterable[Mode] = ()):
        self._modes: dict[str, Mode] = {}
        for mode in modes:
            self._modes.setdefault(mode.slug, mode)

    def __getitem__(self, slug: str) -> Mode:
        return self._modes[slug]

    def __iter__(self) -> Iterator[str]:
        return iter(self._modes)

    def __len__(self) -> int:
        return len(self._modes)

    def modes(self) -> list[Mode]:
        return list(self._modes.values())

    def __repr__(self) -> str:
        return f"MergedView({list(self._modes)})"


@dataclass(frozen=True)
class Resolution:
    """A merged view and the diagnostics gathered while building it."""

    view: MergedView
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity != Severity.INFO]


def merge_listings(listings: Iterable[StoreListing]) -> Resolution:
    """
    Merge store listings given in precedence order.

    Pure: the result depends only on the listings.
    """
    winners: list[Mode] = []
    seen: set[str] = set()
    diagnostics: list[Diagnostic] = []

    for listing in listings:
        diagnostics.extend(listing.diagnostics)
        for slug, mode in listing.modes.items():
            if slug in seen:
                logger.debug(
                    f"Mode '{slug}' from {listing.scope.value}/{listing.format.value} "
                    "is shadowed by a higher-precedence store"
                )
                continue
            seen.add(slug)
            winners.append(mode)

    return Resolution(view=MergedView(winners), diagnostics=tuple(diagnostics))


class MergeResolver:
    """Enumerates every store and merges the results by precedence."""

    def __init__(self, stores: StoreSet):
        self.stores = stores

    def resolve(self) -> Resolution:
        listings = [store.enumerate() for store in self.stores.in_precedence_order()]
        resolution = merge_listings(listings)
        logger.debug(
            f"Resolved {len(resolution.view)} modes "
            f"({len(resolution.warnings)} warnings)"
        )
        return resolution
