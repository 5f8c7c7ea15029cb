from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from brickrecon.app import ExportFormat, ExportResult
from brickrecon.domain.export import Condition
from brickrecon.domain.identity import RowType
from brickrecon.domain.minifig_mapping import MinifigMappingResult
from brickrecon.domain.ports.minifigs import MinifigSyncStatus
from brickrecon.domain.validation import (
    MalformedRequestError,
    RateLimited,
    ValidationOutcome,
    ValidationRequest,
)
from brickrecon.ui import cli as cli_module
from brickrecon.ui.schema import dump_missing_rows, parse_missing_rows

if TYPE_CHECKING:
    from pathlib import Path

class _FakeServices:
    def __init__(self) -> None:
        self.events: list[str] = []

    async def aclose(self) -> None:
        self.events.append("closed")


@pytest.fixture(autouse=True)
def fake_services(monkeypatch: pytest.MonkeyPatch) -> _FakeServices:
    services = _FakeServices()
    monkeypatch.setattr(cli_module, "build_services", lambda: services)
    return services


def test_validate_prints_payload_before_closing_services(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    fake_services: _FakeServices,
) -> None:
    captured: dict[str, object] = {}
    print_json = cli_module._print_json  # noqa: SLF001

    async def fake_validate(services: object, request: ValidationRequest) -> ValidationOutcome:
        captured["services"] = services
        captured["request"] = request
        return ValidationOutcome(valid_id="3957", corrected=True)

    def recording_print(payload: object) -> None:
        fake_services.events.append("printed")
        print_json(payload)

    monkeypatch.setattr(cli_module, "validate_part", fake_validate)
    monkeypatch.setattr(cli_module, "_print_json", recording_print)

    cli_module.main(["validate", "--bl-part-id", "3957a", "--rb-part-id", "3957a"])

    assert captured["services"] is fake_services
    assert fake_services.events == ["printed", "closed"]
    assert captured["request"] == ValidationRequest(
        bl_part_id="3957a", rb_part_id="3957a", caller="cli"
    )
    assert json.loads(capsys.readouterr().out) == {"validBlPartId": "3957", "corrected": True}


def test_validate_rate_limited_exit_code(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    async def fake_validate(services: object, request: ValidationRequest) -> RateLimited:
        return RateLimited(retry_after_seconds=42)

    monkeypatch.setattr(cli_module, "validate_part", fake_validate)

    with pytest.raises(SystemExit) as exc:
        cli_module.main(["validate", "--bl-part-id", "3001"])

    assert exc.value.code == cli_module.EXIT_RATE_LIMITED
    assert json.loads(capsys.readouterr().out)["retryAfterSeconds"] == 42


def test_validate_malformed_request_exit_code(
    monkeypatch: pytest.MonkeyPatch, fake_services: _FakeServices
) -> None:
    async def fake_validate(services: object, request: ValidationRequest) -> ValidationOutcome:
        raise MalformedRequestError("bl_part_id is required")

    monkeypatch.setattr(cli_module, "validate_part", fake_validate)

    with pytest.raises(SystemExit) as exc:
        cli_module.main(["validate", "--bl-part-id", " "])

    assert exc.value.code == cli_module.EXIT_USAGE
    assert fake_services.events == ["closed"]


def test_export_writes_csv_and_unmapped_rows(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, fake_services: _FakeServices
) -> None:
    captured: dict[str, object] = {}

    async def fake_export(
        services: object, rows: list[object], export_format: ExportFormat, **kwargs: object
    ) -> ExportResult:
        captured["rows"] = rows
        captured["format"] = export_format
        captured.update(kwargs)
        return ExportResult(csv="header\nline", unmapped=[rows[1]])  # type: ignore[list-item]

    monkeypatch.setattr(cli_module, "export_rows", fake_export)
    source = tmp_path / "rows.json"
    source.write_text(
        json.dumps(
            [
                {"setNumber": "1-1", "partId": "3001", "colorId": 5, "quantityMissing": 3},
                {
                    "set_number": "1-1",
                    "part_id": "fig:fig-1",
                    "color_id": 0,
                    "quantity_missing": 1,
                    "rowType": "minifig_parent",
                    "blMinifigId": "sw1",
                },
            ]
        )
    )
    output = tmp_path / "out.csv"
    unmapped = tmp_path / "unmapped.json"

    cli_module.main(
        [
            "export",
            "--format",
            "bricklink",
            "--input",
            str(source),
            "--output",
            str(output),
            "--unmapped",
            str(unmapped),
            "--wanted-list-name",
            "My List",
            "--condition",
            "N",
        ]
    )

    assert output.read_text(encoding="utf-8") == "header\nline"
    assert fake_services.events == ["closed"]
    assert captured["format"] is ExportFormat.BRICKLINK
    assert captured["resolve"] is True
    options = captured["bricklink_options"]
    assert getattr(options, "wanted_list_name") == "My List"
    assert getattr(options, "condition") is Condition.NEW
    overrides = captured["inventory_rows"]
    assert isinstance(overrides, list)
    assert len(overrides) == 1
    assert overrides[0].row_type is RowType.MINIFIG_PARENT
    assert overrides[0].bl_minifig_id == "sw1"
    assert json.loads(unmapped.read_text()) == [
        {"setNumber": "1-1", "partId": "fig:fig-1", "colorId": 0, "quantityMissing": 1}
    ]


def test_export_to_stdout(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    async def fake_export(
        services: object, rows: list[object], export_format: ExportFormat, **kwargs: object
    ) -> ExportResult:
        return ExportResult(csv="Element ID,Quantity")

    monkeypatch.setattr(cli_module, "export_rows", fake_export)
    source = tmp_path / "rows.json"
    source.write_text("[]")

    cli_module.main(["export", "--format", "pick-a-brick", "--input", str(source)])

    assert capsys.readouterr().out == "Element ID,Quantity\n"


def test_invalid_rows_file_exits_with_failure(tmp_path: Path) -> None:
    source = tmp_path / "rows.json"
    source.write_text('[{"partId": "3001"}]')

    with pytest.raises(SystemExit) as exc:
        cli_module.main(["export", "--format", "rebrickable", "--input", str(source)])

    assert exc.value.code == cli_module.EXIT_FAILURE


def test_minifigs_prints_mapping(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    fake_services: _FakeServices,
) -> None:
    captured: dict[str, object] = {}

    async def fake_map(
        services: object, set_number: str, fig_ids: list[str], *, read_only: bool
    ) -> MinifigMappingResult:
        captured.update(set_number=set_number, fig_ids=fig_ids, read_only=read_only)
        return MinifigMappingResult(
            mappings={"fig-1": "sw1", "fig-2": None},
            sync_status=MinifigSyncStatus.OK,
            unmapped_fig_ids=["fig-3"],
        )

    monkeypatch.setattr(cli_module, "map_set_minifigs", fake_map)

    cli_module.main(["minifigs", "--set", "75192-1", "--read-only", "fig-1", "fig-2", "fig-3"])

    assert captured == {
        "set_number": "75192-1",
        "fig_ids": ["fig-1", "fig-2", "fig-3"],
        "read_only": True,
    }
    assert json.loads(capsys.readouterr().out) == {
        "mappings": {"fig-1": "sw1", "fig-2": None},
        "syncStatus": "ok",
        "unmappedFigIds": ["fig-3"],
        "syncTriggered": False,
    }
    assert fake_services.events == ["closed"]


def test_init_db_runs_migrations(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_init(*, database_uri: str | None = None) -> None:
        captured["database_uri"] = database_uri

    monkeypatch.setattr(cli_module, "init_database", fake_init)

    cli_module.main(["init-db", "--database-uri", "sqlite+pysqlite:///tmp.db"])

    assert captured == {"database_uri": "sqlite+pysqlite:///tmp.db"}


def test_row_schema_round_trip_keeps_overrides() -> None:
    payloads = parse_missing_rows(
        '[{"partId": "3957a", "colorId": 4, "quantityMissing": 2, "blPartId": "3957"}]'
    )

    assert payloads[0].to_inventory_row() is not None
    assert payloads[0].to_missing_row().part_id == "3957a"
    assert json.loads(dump_missing_rows([payloads[0].to_missing_row()])) == [
        {"setNumber": "", "partId": "3957a", "colorId": 4, "quantityMissing": 2}
    ]
