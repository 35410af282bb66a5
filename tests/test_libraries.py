from __future__ import annotations

import pytest

from clustersync.api.library import (
    Cran,
    Egg,
    InstallStatus,
    Jar,
    LibraryStatus,
    Maven,
    PyPi,
    Whl,
    library_from_json,
    library_to_json,
)
from clustersync.core.exceptions import ValidationError
from clustersync.engine.libraries import diff_libraries, is_converged, is_settled

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


def installed(*libs) -> list[LibraryStatus]:
    return [LibraryStatus(lib, InstallStatus.INSTALLED) for lib in libs]


# ─── Wire encoding ───────────────────────────────────────────────────


class TestLibraryCodec:
    @pytest.mark.parametrize("lib,wire", [
        (Jar("dbfs://foo.jar"), {"jar": "dbfs://foo.jar"}),
        (Egg("dbfs://bar.egg"), {"egg": "dbfs://bar.egg"}),
        (Whl("dbfs://baz.whl"), {"whl": "dbfs://baz.whl"}),
        (PyPi("seaborn==1.2.4"), {"pypi": {"package": "seaborn==1.2.4"}}),
        (Cran("rkeops", repo="cran.us"), {"cran": {"package": "rkeops", "repo": "cran.us"}}),
        (
            Maven("com.microsoft.azure:azure-eventhubs-spark_2.11:2.3.7", exclusions=("org.slf4j:slf4j",)),
            {"maven": {
                "coordinates": "com.microsoft.azure:azure-eventhubs-spark_2.11:2.3.7",
                "exclusions": ["org.slf4j:slf4j"],
            }},
        ),
    ])
    def test_single_variant(self, lib, wire):
        assert library_to_json(lib) == wire
        assert library_from_json(wire) == lib

    def test_rejects_two_variants(self):
        with pytest.raises(ValidationError, match="exactly one"):
            library_from_json({"jar": "a.jar", "egg": "b.egg"})

    def test_rejects_empty(self):
        with pytest.raises(ValidationError, match="none"):
            library_from_json({})

    def test_rejects_unknown_object(self):
        with pytest.raises(ValidationError, match="Unsupported library"):
            library_to_json("dbfs://foo.jar")  # type: ignore[arg-type]

    def test_identity_includes_repo(self):
        assert PyPi("requests") != PyPi("requests", repo="https://pypi.internal")
        assert Jar("dbfs://a.jar") != Whl("dbfs://a.jar")


class TestInstallStatus:
    @pytest.mark.parametrize("raw,expected", [
        ("INSTALLED", InstallStatus.INSTALLED),
        ("installing", InstallStatus.INSTALLING),
        ("RESOLVING", InstallStatus.INSTALLING),
        ("SKIPPED", InstallStatus.FAILED),
        ("UNINSTALL_ON_RESTART", InstallStatus.UNINSTALL_ON_RESTART),
        (None, InstallStatus.PENDING),
        ("SOMETHING_NEW", InstallStatus.PENDING),
    ])
    def test_parse(self, raw, expected):
        assert InstallStatus.parse(raw) is expected

    def test_settled(self):
        assert InstallStatus.INSTALLED.settled
        assert InstallStatus.FAILED.settled
        assert InstallStatus.UNINSTALL_ON_RESTART.settled
        assert not InstallStatus.PENDING.settled
        assert not InstallStatus.INSTALLING.settled

    def test_status_from_json(self):
        status = LibraryStatus.from_json({
            "library": {"whl": "dbfs://baz.whl"},
            "status": "FAILED",
            "messages": ["Library resolution failed"],
        })
        assert status == LibraryStatus(Whl("dbfs://baz.whl"), InstallStatus.FAILED, ("Library resolution failed",))


# ─── Differ ──────────────────────────────────────────────────────────


class TestDiffLibraries:
    def test_empty_when_converged(self):
        desired = [Jar("a.jar"), PyPi("numpy")]
        delta = diff_libraries(desired, installed(*desired))
        assert delta.empty
        assert delta.install == ()
        assert delta.uninstall == ()

    def test_install_follows_declaration_order(self):
        desired = [Whl("z.whl"), Jar("a.jar"), PyPi("m")]
        delta = diff_libraries(desired, [])
        assert delta.install == (Whl("z.whl"), Jar("a.jar"), PyPi("m"))

    def test_duplicates_in_desired_install_once(self):
        delta = diff_libraries([Jar("a.jar"), Jar("a.jar")], [])
        assert delta.install == (Jar("a.jar"),)

    def test_add_and_remove(self):
        delta = diff_libraries([Jar("dbfs://foo.jar")], installed(Egg("dbfs://bar.egg")))
        assert delta.install == (Jar("dbfs://foo.jar"),)
        assert delta.uninstall == (Egg("dbfs://bar.egg"),)

    def test_install_and_uninstall_are_disjoint(self):
        desired = [Jar("a.jar"), Egg("b.egg")]
        observed = [
            LibraryStatus(Jar("a.jar"), InstallStatus.FAILED),
            LibraryStatus(PyPi("x"), InstallStatus.INSTALLED),
            LibraryStatus(Egg("b.egg"), InstallStatus.PENDING),
        ]
        delta = diff_libraries(desired, observed)
        assert set(delta.install).isdisjoint(delta.uninstall)
        assert set(delta.install) <= set(desired)
        assert not set(delta.uninstall) & set(desired)

    def test_in_flight_libraries_are_left_alone(self):
        observed = [
            LibraryStatus(Jar("a.jar"), InstallStatus.PENDING),
            LibraryStatus(Egg("b.egg"), InstallStatus.INSTALLING),
        ]
        assert diff_libraries([Jar("a.jar"), Egg("b.egg")], observed).empty

    def test_pending_uninstall_not_repeated(self):
        observed = [LibraryStatus(Egg("b.egg"), InstallStatus.UNINSTALL_ON_RESTART)]
        assert diff_libraries([], observed).empty

    def test_desired_library_marked_for_uninstall_is_reinstalled(self):
        observed = [LibraryStatus(Egg("b.egg"), InstallStatus.UNINSTALL_ON_RESTART)]
        assert diff_libraries([Egg("b.egg")], observed).install == (Egg("b.egg"),)

    def test_failed_library_retried_within_budget(self):
        observed = [LibraryStatus(Jar("a.jar"), InstallStatus.FAILED, ("boom",))]
        delta = diff_libraries([Jar("a.jar")], observed, attempts={Jar("a.jar"): 1}, budget=2)
        assert delta.install == (Jar("a.jar"),)
        assert delta.exhausted == ()

    def test_failed_library_exhausts_budget(self):
        status = LibraryStatus(Jar("a.jar"), InstallStatus.FAILED, ("boom",))
        delta = diff_libraries([Jar("a.jar")], [status], attempts={Jar("a.jar"): 2}, budget=2)
        assert delta.empty
        assert delta.exhausted == (status,)

    def test_missing_library_exhausts_budget(self):
        delta = diff_libraries([Jar("a.jar")], [], attempts={Jar("a.jar"): 1}, budget=1)
        assert delta.install == ()
        assert [s.library for s in delta.exhausted] == [Jar("a.jar")]
        assert delta.exhausted[0].status is InstallStatus.FAILED


class TestConvergence:
    def test_is_converged(self):
        desired = [Jar("a.jar")]
        assert is_converged(desired, installed(Jar("a.jar")))
        assert is_converged(desired, [
            *installed(Jar("a.jar")),
            LibraryStatus(Egg("b.egg"), InstallStatus.UNINSTALL_ON_RESTART),
        ])
        assert not is_converged(desired, [])
        assert not is_converged(desired, installed(Jar("a.jar"), Egg("b.egg")))

    def test_is_settled_waits_for_final_status(self):
        desired = [Jar("a.jar")]
        assert not is_settled(desired, [], [LibraryStatus(Jar("a.jar"), InstallStatus.INSTALLING)])
        assert is_settled(desired, [], [LibraryStatus(Jar("a.jar"), InstallStatus.FAILED)])

    def test_unreported_library_is_settled_and_reinstalled(self):
        desired = [Jar("a.jar")]
        assert is_settled(desired, [], [])
        assert diff_libraries(desired, [], attempts={Jar("a.jar"): 1}, budget=2).install == (Jar("a.jar"),)

    def test_duplicate_reports_use_first_status(self):
        desired = [Jar("a.jar")]
        observed = [
            LibraryStatus(Jar("a.jar"), InstallStatus.INSTALLING),
            LibraryStatus(Jar("a.jar"), InstallStatus.INSTALLED),
        ]
        assert diff_libraries(desired, observed).empty
        assert not is_settled(desired, [], observed)
        assert not is_converged(desired, observed)
        assert is_converged(desired, list(reversed(observed)))
        assert is_settled(desired, [], list(reversed(observed)))

    def test_is_settled_waits_for_removals(self):
        removed = [Egg("b.egg")]
        assert not is_settled([], removed, installed(Egg("b.egg")))
        assert is_settled([], removed, [LibraryStatus(Egg("b.egg"), InstallStatus.UNINSTALL_ON_RESTART)])
        assert is_settled([], removed, [])
