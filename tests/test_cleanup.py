from datetime import datetime

from bitacora_app.cleanup import format_timestamp, normalize_dates, unwrap_response

NOW = datetime(2026, 3, 15, 9, 30, 0, 987654)


def test_unwrap_strips_json_fence():
    assert unwrap_response('```json\n{"accion": "crear"}\n```') == '{"accion": "crear"}'


def test_unwrap_strips_bare_fence_and_whitespace():
    assert unwrap_response('  ```\n[1, 2]\n```  ') == '[1, 2]'


def test_unwrap_leaves_plain_json():
    assert unwrap_response(' {"a": 1}\n') == '{"a": 1}'


def test_unwrap_handles_none():
    assert unwrap_response(None) == ''


def test_format_timestamp_drops_microseconds():
    assert format_timestamp(NOW) == "2026-03-15T09:30:00"


def test_normalize_replaces_legacy_years_only():
    text = '{"a": "2021-06-01T08:00:00", "b": "2023-12-31T23:59:59", "c": "2025-06-01T08:00:00"}'
    assert normalize_dates(text, NOW) == (
        '{"a": "2026-03-15T09:30:00", "b": "2026-03-15T09:30:00", "c": "2025-06-01T08:00:00"}'
    )


def test_normalize_ignores_dates_without_time():
    assert normalize_dates("due 2022-01-01", NOW) == "due 2022-01-01"
