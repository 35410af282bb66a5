"""Library set differ.

Libraries are matched by structural equality of the whole variant, so
``PyPi("requests")`` and ``PyPi("requests", repo="internal")`` are two
different libraries.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from clustersync.api.library import InstallStatus, Library, LibraryStatus

# a library marked for uninstall is gone after the next restart
_REINSTALL = frozenset({InstallStatus.FAILED, InstallStatus.UNINSTALL_ON_RESTART})


@dataclass(frozen=True, slots=True)
class LibraryDiff:
    install: tuple[Library, ...] = ()
    uninstall: tuple[Library, ...] = ()
    exhausted: tuple[LibraryStatus, ...] = ()
    """Desired libraries that keep failing after the attempt budget was spent."""

    @property
    def empty(self) -> bool:
        return not self.install and not self.uninstall


def diff_libraries(
    desired: Sequence[Library],
    observed: Iterable[LibraryStatus],
    *,
    attempts: Mapping[Library, int] | None = None,
    budget: int | None = None,
) -> LibraryDiff:
    """Compute the install and uninstall sets that move ``observed`` to ``desired``.

    Args:
        desired: Libraries in declaration order. Install order follows it.
        observed: Statuses reported by the control plane, in any order.
        attempts: Install submissions already made per library in this cycle.
        budget: Maximum submissions per library. A failed library that has
            used its budget goes to ``exhausted`` instead of ``install``.
    """
    attempts = attempts or {}
    index = _index(observed)

    wanted = dict.fromkeys(desired)
    install: list[Library] = []
    exhausted: list[LibraryStatus] = []

    for lib in wanted:
        status = index.get(lib)
        if status is not None and status.status not in _REINSTALL:
            continue
        if budget is not None and attempts.get(lib, 0) >= budget:
            exhausted.append(status or LibraryStatus(
                lib, InstallStatus.FAILED, ("not reported by the control plane",),
            ))
        else:
            install.append(lib)

    uninstall = [
        lib
        for lib, status in index.items()
        if lib not in wanted and status.status is not InstallStatus.UNINSTALL_ON_RESTART
    ]

    return LibraryDiff(
        install=tuple(install),
        uninstall=tuple(uninstall),
        exhausted=tuple(exhausted),
    )


def _index(observed: Iterable[LibraryStatus]) -> dict[Library, LibraryStatus]:
    # first report wins when the control plane lists a library twice
    index: dict[Library, LibraryStatus] = {}
    for status in observed:
        index.setdefault(status.library, status)
    return index


def is_converged(desired: Sequence[Library], observed: Iterable[LibraryStatus]) -> bool:
    """Every desired library installed; nothing else left but pending uninstalls."""
    index = {lib: s.status for lib, s in _index(observed).items()}
    wanted = set(desired)
    if any(index.get(lib) is not InstallStatus.INSTALLED for lib in wanted):
        return False
    return all(
        status is InstallStatus.UNINSTALL_ON_RESTART
        for lib, status in index.items()
        if lib not in wanted
    )


def is_settled(
    desired: Sequence[Library],
    removed: Iterable[Library],
    observed: Iterable[LibraryStatus],
) -> bool:
    """The control plane has finished working on the libraries we touched.

    Desired libraries must be reported with a final status (installed,
    failed, or marked for uninstall) or not reported at all; the differ
    treats a missing library as failed. Removed ones must be gone or
    marked for uninstall.
    """
    index = {lib: s.status for lib, s in _index(observed).items()}
    for lib in desired:
        status = index.get(lib)
        if status is not None and not status.settled:
            return False
    return all(
        index.get(lib) in (None, InstallStatus.UNINSTALL_ON_RESTART)
        for lib in removed
    )
