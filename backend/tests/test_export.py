"""CSV / JSON export of admin logs."""

import json
from datetime import datetime

from attendance.models import EntryStatus
from attendance.services import export_service


def test_csv_quotes_every_cell_and_escapes_quotes(engines, employee, admin):
    entry = engines.store.create_closed_entry(
        employee_id=employee.id,
        clock_in=datetime(2026, 3, 9, 9, 0),
        clock_out=datetime(2026, 3, 9, 17, 15, 30),
        status=EntryStatus.COMPLETED,
        work_summary='Shipped "v2", wrote docs',
    )
    engines.store.commit()
    engines.overrides.flag_entry(entry.id, actor=admin, is_flagged=True, flag_reason="Check overtime")

    text = export_service.render_csv([entry])
    lines = text.split("\n")

    assert lines[0] == (
        '"Employee","Department","Date","Clock In","Clock Out","Duration (minutes)",'
        '"Work Summary","Status","Flagged","Manual Entry"'
    )
    assert lines[1] == (
        '"Alice Worker","Engineering","2026-03-09","2026-03-09T09:00:00Z","2026-03-09T17:15:30Z",'
        '"495","Shipped ""v2"", wrote docs","COMPLETED","Yes: Check overtime","No"'
    )
    assert text.endswith("\n")


def test_csv_open_entry_has_blank_close_columns(engines, other_employee):
    entry = engines.clock.clock_in(other_employee.id)

    row = export_service.entry_to_csv_row(entry)
    assert row[0] == "Bob Builder"
    assert row[1] == ""
    assert row[4] == ""
    assert row[5] == ""
    assert row[7] == "IN_PROGRESS"


def test_csv_manual_entry_reason(engines, admin, employee):
    entry = engines.overrides.manual_entry(
        actor=admin,
        employee_id=employee.id,
        clock_in=datetime(2026, 3, 2, 9, 0),
        clock_out=datetime(2026, 3, 2, 12, 0),
        manual_entry_reason="Badge reader down",
    )
    row = export_service.entry_to_csv_row(entry)
    assert row[7] == "MANUAL"
    assert row[9] == "Yes: Badge reader down"


def test_csv_with_no_entries_is_header_only(db_session):
    assert export_service.render_csv([]).count("\n") == 1


def test_json_export(engines, employee):
    entry = engines.clock.clock_in(employee.id)
    data = json.loads(export_service.render_json([entry]))
    assert data[0]["id"] == entry.id
    assert data[0]["employeeName"] == "Alice Worker"
    assert data[0]["clockOut"] is None
