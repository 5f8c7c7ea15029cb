from __future__ import annotations

from brickrecon.adapters.bricklink.schema import Envelope, parse_subset_entries


def test_envelope_keeps_unknown_keys() -> None:
    envelope = Envelope.model_validate(
        {"meta": {"code": 200, "message": "OK", "extra": 1}, "data": {"no": "3001"}, "x": True}
    )

    assert envelope.code == 200
    assert envelope.model_extra == {"x": True}


def test_envelope_without_meta_has_no_code() -> None:
    assert Envelope.model_validate({}).code is None


def test_meta_detail_prefers_description() -> None:
    envelope = Envelope.model_validate({"meta": {"code": 400, "message": "m", "description": "d"}})

    assert envelope.meta is not None
    assert envelope.meta.detail == "d"


def test_parse_subset_entries_accepts_groups_and_bare_entries() -> None:
    entries = parse_subset_entries(
        [
            {"match_no": 1, "entries": [{"item": {"no": "a", "type": "PART"}, "quantity": 3}]},
            {"item": {"no": "b", "type": "MINIFIG"}, "quantity": -2},
        ]
    )

    assert [(entry.item.no, entry.quantity) for entry in entries] == [("a", 3), ("b", 1)]


def test_parse_subset_entries_ignores_unexpected_shapes() -> None:
    assert parse_subset_entries(None) == []
    assert parse_subset_entries("nope") == []
