from __future__ import annotations

from datetime import UTC, datetime

from softcatalog.domain.detection import apply_claims, run_detectors
from softcatalog.domain.errors import SourceReadError
from softcatalog.domain.model import Category, OriginPlatform
from tests.helpers.fakes import StubDetector, make_candidate


def test_run_detectors_reports_each_detector() -> None:
    registry = StubDetector(
        "Registry",
        OriginPlatform.REGISTRY,
        candidates=[make_candidate("7-Zip"), make_candidate("VLC media player")],
    )
    steam = StubDetector("Steam", OriginPlatform.STEAM, available=False)

    result = run_detectors([registry, steam])

    assert [candidate.name for candidate in result.candidates] == ["7-Zip", "VLC media player"]
    assert [(report.name, report.available, report.candidates) for report in result.reports] == [
        ("Registry", True, 2),
        ("Steam", False, 0),
    ]
    assert steam.detect_calls == 0


def test_failing_detector_does_not_stop_the_pass() -> None:
    broken = StubDetector(
        "Epic",
        OriginPlatform.EPIC,
        error=SourceReadError("manifest folder vanished", origin=OriginPlatform.EPIC),
    )
    crashing = StubDetector("GOG", OriginPlatform.GOG, error=KeyError("gameName"))
    working = StubDetector(
        "Steam",
        OriginPlatform.STEAM,
        candidates=[make_candidate("Portal 2", OriginPlatform.STEAM, external_id="620")],
    )

    result = run_detectors([broken, crashing, working])

    assert [candidate.external_id for candidate in result.candidates] == ["620"]
    assert result.reports[0].error == "manifest folder vanished"
    assert result.reports[1].error is not None
    assert "gameName" in result.reports[1].error
    assert result.reports[2].error is None


def test_specialized_detector_claims_registry_entry() -> None:
    path = r"C:\Program Files (x86)\Steam\steamapps\common\Portal 2"
    installed = datetime(2023, 1, 2, tzinfo=UTC)
    generic = make_candidate(
        "Portal 2",
        install_path=path,
        publisher="Valve",
        install_timestamp=installed,
        attributes={"registry_key": r"HKLM\Uninstall\Steam App 620"},
    )
    claim = make_candidate(
        "Portal 2",
        OriginPlatform.STEAM,
        external_id="620",
        install_path=path,
        category=Category.GAMES,
    )
    steam = StubDetector("Steam", OriginPlatform.STEAM, claims={path: claim})
    candidates = [generic]

    claimed = apply_claims(candidates, [StubDetector("Registry", OriginPlatform.REGISTRY), steam])

    assert claimed == 1
    (replaced,) = candidates
    assert replaced.origin is OriginPlatform.STEAM
    assert replaced.external_id == "620"
    assert replaced.publisher == "Valve"
    assert replaced.install_timestamp == installed
    assert replaced.attributes["registry_key"] == r"HKLM\Uninstall\Steam App 620"


def test_claims_leave_unmatched_and_specialized_candidates_alone() -> None:
    unmatched = make_candidate("Notepad++", install_path=r"C:\Program Files\Notepad++")
    epic_game = make_candidate("Alan Wake 2", OriginPlatform.EPIC, install_path=r"D:\Games\AW2")
    detectors = [StubDetector("Steam", OriginPlatform.STEAM)]
    candidates = [unmatched, epic_game]

    assert apply_claims(candidates, detectors) == 0
    assert candidates == [unmatched, epic_game]


def test_run_detectors_counts_claims() -> None:
    path = r"D:\Games\Far Cry 5"
    registry = StubDetector(
        "Registry",
        OriginPlatform.REGISTRY,
        candidates=[make_candidate("Far Cry 5", install_path=path)],
    )
    ubisoft = StubDetector(
        "Ubisoft",
        OriginPlatform.UBISOFT,
        claims={
            path: make_candidate(
                "Far Cry 5", OriginPlatform.UBISOFT, external_id="3602", install_path=path
            )
        },
    )

    result = run_detectors([registry, ubisoft])

    assert result.claimed == 1
    assert result.candidates[0].origin is OriginPlatform.UBISOFT
