"""Tests for the workbook-backed store."""

import os
import threading
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest
from openpyxl import Workbook, load_workbook

from mysociety.database import workbook_store
from mysociety.database.schema import COLUMNS
from mysociety.database.workbook_store import WorkbookStore
from mysociety.domain.entities import Actor, InflowRecord, OutflowRecord, RecordKind
from mysociety.domain.errors import NotFoundError, StorageError, ValidationError

OUTFLOW = RecordKind.OUTFLOW
INFLOW = RecordKind.INFLOW


def _expense(store, actor, description, day, amount="100"):
    return store.create(
        OUTFLOW,
        {"description": description, "amount": amount, "date": date(2024, 3, day)},
        actor,
    )


class TestInitialization:
    """Tests for lazy creation of the store file."""

    def test_file_created_on_first_read(self, store, data_file):
        assert not data_file.exists()
        assert list(store.list(OUTFLOW)) == []
        assert data_file.exists()

        workbook = load_workbook(data_file)
        assert workbook.sheetnames == ["Expenses", "Payments"]
        header = [cell.value for cell in workbook["Payments"][1]]
        assert header == list(COLUMNS[INFLOW])

    def test_initialize_keeps_existing_file(self, store, admin, gardener_fields):
        store.create(OUTFLOW, gardener_fields, admin)
        store.initialize()
        assert len(store.list(OUTFLOW)) == 1


class TestCreate:
    """Tests for creating records."""

    def test_create_outflow(self, store, admin, gardener_fields):
        record = store.create(OUTFLOW, gardener_fields, admin)

        assert isinstance(record, OutflowRecord)
        assert record.description == "Gardener"
        assert record.amount == Decimal("1500.00")
        assert record.date == date(2024, 3, 1)
        assert record.created_by == "admin"
        assert record.modified_by is None
        assert record.modified_at is None
        assert record.deleted is False
        assert store.get_by_id(OUTFLOW, record.id) == record

    def test_create_inflow(self, store, treasurer):
        record = store.create(
            INFLOW,
            {
                "unit_reference": "A-101",
                "amount": "2500",
                "date": "2024-03-05",
                "payment_mode": "online",
                "reference_number": "UTR123",
            },
            treasurer,
        )

        assert isinstance(record, InflowRecord)
        assert record.payment_mode == "Online"
        assert store.get_by_id(INFLOW, record.id) == record
        assert store.get_by_id(OUTFLOW, record.id) is None

    def test_ids_are_unique(self, store, admin):
        ids = {_expense(store, admin, f"Item {n}", 1).id for n in range(5)}
        assert len(ids) == 5

    @pytest.mark.parametrize(
        "fields",
        [
            {"description": "Gardener", "amount": "-5", "date": "2024-03-01"},
            {"amount": "5", "date": "2024-03-01"},
            {"description": "Gardener", "amount": "5", "date": "2024-13-01"},
            {"description": "Gardener", "amount": "5", "date": "2024-03-01", "id": "mine"},
        ],
    )
    def test_invalid_create_never_touches_storage(self, store, data_file, admin, fields):
        with pytest.raises(ValidationError):
            store.create(OUTFLOW, fields, admin)
        assert not data_file.exists()

    def test_actor_required(self, store, gardener_fields):
        with pytest.raises(ValidationError):
            store.create(OUTFLOW, gardener_fields, Actor(username=""))


class TestList:
    """Tests for listing records with date filters."""

    @pytest.fixture
    def march(self, store, admin):
        return [_expense(store, admin, name, day) for name, day in [("c", 20), ("a", 1), ("b", 10)]]

    def test_insertion_order(self, store, march):
        assert [r.description for r in store.list(OUTFLOW)] == ["c", "a", "b"]

    @pytest.mark.parametrize(
        "from_date, to_date, expected",
        [
            (None, None, ["c", "a", "b"]),
            (date(2024, 3, 10), None, ["c", "b"]),
            (None, date(2024, 3, 10), ["a", "b"]),
            (date(2024, 3, 1), date(2024, 3, 10), ["a", "b"]),
            (date(2024, 3, 21), None, []),
            (date(2024, 3, 20), date(2024, 3, 1), []),
        ],
    )
    def test_inclusive_bounds(self, store, march, from_date, to_date, expected):
        listing = store.list(OUTFLOW, from_date=from_date, to_date=to_date)
        assert [r.description for r in listing] == expected

    def test_tables_are_separate(self, store, march):
        assert list(store.list(INFLOW)) == []


class TestUpdate:
    """Tests for partial updates."""

    def test_merges_only_supplied_fields(self, store, admin, treasurer, gardener_fields):
        created = store.create(OUTFLOW, gardener_fields, admin)
        updated = store.update(OUTFLOW, created.id, {"amount": "1800.00"}, treasurer)

        assert updated.amount == Decimal("1800.00")
        assert updated.description == "Gardener"
        assert updated.date == created.date
        assert updated.created_by == "admin"
        assert updated.created_at == created.created_at
        assert updated.modified_by == "treasurer"
        assert updated.modified_at > created.created_at
        assert store.get_by_id(OUTFLOW, created.id) == updated

    def test_clearing_optional_field(self, store, admin):
        created = store.create(
            OUTFLOW,
            {"description": "Paint", "amount": "10", "date": "2024-03-01", "notes": "Gate"},
            admin,
        )
        store.update(OUTFLOW, created.id, {"notes": ""}, admin)
        assert store.get_by_id(OUTFLOW, created.id).notes is None

    @pytest.mark.parametrize("name", ["id", "created_by", "created_at", "deleted"])
    def test_identity_fields_are_immutable(self, store, admin, gardener_fields, name):
        created = store.create(OUTFLOW, gardener_fields, admin)
        backups_before = store.list_backups()

        with pytest.raises(ValidationError):
            store.update(OUTFLOW, created.id, {name: "x"}, admin)

        assert store.list_backups() == backups_before
        assert store.get_by_id(OUTFLOW, created.id) == created

    def test_empty_update_rejected(self, store, admin, gardener_fields):
        created = store.create(OUTFLOW, gardener_fields, admin)
        with pytest.raises(ValidationError):
            store.update(OUTFLOW, created.id, {}, admin)

    def test_missing_record(self, store, admin):
        with pytest.raises(NotFoundError):
            store.update(OUTFLOW, "does-not-exist", {"amount": "1"}, admin)

    def test_modified_at_never_precedes_created_at(self, data_file, backup_dir, admin, gardener_fields):
        times = iter(
            [
                datetime(2024, 3, 1, 12, tzinfo=UTC),  # created_at
                datetime(2024, 3, 1, 11, tzinfo=UTC),  # backup name on update
                datetime(2024, 3, 1, 11, tzinfo=UTC),  # clock stepped back
            ]
        )
        store = WorkbookStore(data_file, backup_dir, clock=lambda: next(times))
        created = store.create(OUTFLOW, gardener_fields, admin)
        updated = store.update(OUTFLOW, created.id, {"notes": "x"}, admin)
        assert updated.modified_at == created.created_at


class TestSoftDelete:
    """Tests for soft deletion."""

    def test_returns_pre_delete_snapshot(self, store, admin, gardener_fields):
        created = store.create(OUTFLOW, gardener_fields, admin)
        snapshot = store.soft_delete(OUTFLOW, created.id, admin)
        assert snapshot == created
        assert snapshot.deleted is False

    def test_deleted_record_is_invisible(self, store, admin, gardener_fields):
        created = store.create(OUTFLOW, gardener_fields, admin)
        store.soft_delete(OUTFLOW, created.id, admin)

        assert store.get_by_id(OUTFLOW, created.id) is None
        assert list(store.list(OUTFLOW)) == []
        assert list(store.list(OUTFLOW, date(2024, 3, 1), date(2024, 3, 1))) == []

    def test_row_stays_in_file(self, store, data_file, admin, resident, gardener_fields):
        created = store.create(OUTFLOW, gardener_fields, admin)
        store.soft_delete(OUTFLOW, created.id, resident)

        sheet = load_workbook(data_file)["Expenses"]
        rows = list(sheet.iter_rows(min_row=2, values_only=True))
        assert len(rows) == 1
        header = list(COLUMNS[OUTFLOW])
        assert rows[0][header.index("id")] == created.id
        assert rows[0][header.index("deleted")] is True
        assert rows[0][header.index("modified_by")] == "resident"

    def test_delete_twice(self, store, admin, gardener_fields):
        created = store.create(OUTFLOW, gardener_fields, admin)
        store.soft_delete(OUTFLOW, created.id, admin)
        with pytest.raises(NotFoundError):
            store.soft_delete(OUTFLOW, created.id, admin)
        with pytest.raises(NotFoundError):
            store.update(OUTFLOW, created.id, {"amount": "1"}, admin)


def test_gardener_scenario(store, admin, treasurer, gardener_fields):
    created = store.create(OUTFLOW, gardener_fields, admin)
    assert created.deleted is False
    assert created.created_by == "admin"
    assert created.modified_by is None

    updated = store.update(OUTFLOW, created.id, {"amount": Decimal("1800.00")}, treasurer)
    assert updated.amount == Decimal("1800.00")
    assert updated.description == "Gardener"
    assert updated.modified_by == "treasurer"

    store.soft_delete(OUTFLOW, created.id, treasurer)
    assert created.id not in [r.id for r in store.list(OUTFLOW)]
    assert store.get_by_id(OUTFLOW, created.id) is None


class TestBackups:
    """Tests for pre-write backups."""

    def test_first_mutation_has_nothing_to_back_up(self, store, admin, gardener_fields):
        store.create(OUTFLOW, gardener_fields, admin)
        assert store.list_backups() == []

    def test_each_mutation_backs_up_previous_version(self, store, data_file, admin, gardener_fields):
        created = store.create(OUTFLOW, gardener_fields, admin)
        before_update = data_file.read_bytes()
        store.update(OUTFLOW, created.id, {"amount": "1"}, admin)
        store.soft_delete(OUTFLOW, created.id, admin)

        backups = store.list_backups()
        assert len(backups) == 2
        assert backups[1].read_bytes() == before_update

    def test_backup_names_embed_timestamp(self, store, admin, gardener_fields):
        store.create(OUTFLOW, gardener_fields, admin)
        backup = store.create_backup()
        assert backup.name.startswith("mysociety_data_2024-03-01T")
        assert backup.suffix == ".xlsx"

    def test_listing_is_newest_first(self, store, admin, gardener_fields):
        store.create(OUTFLOW, gardener_fields, admin)
        first = store.create_backup()
        second = store.create_backup()
        assert store.list_backups() == [second, first]

    def test_same_timestamp_does_not_overwrite(self, data_file, backup_dir, admin, gardener_fields):
        fixed = datetime(2024, 3, 1, 9, tzinfo=UTC)
        store = WorkbookStore(data_file, backup_dir, clock=lambda: fixed)
        store.create(OUTFLOW, gardener_fields, admin)
        first = store.create_backup()
        second = store.create_backup()
        assert first != second
        assert store.list_backups() == [second, first]

    def test_no_file_no_backup(self, store):
        assert store.create_backup() is None


class TestCellFidelity:
    """What create returns is what the file gives back."""

    def test_control_character_rejected_before_backup(self, store, admin, gardener_fields):
        store.create(OUTFLOW, gardener_fields, admin)

        with pytest.raises(ValidationError):
            store.create(
                OUTFLOW, {"description": "bell\x07", "amount": "1", "date": "2024-03-01"}, admin
            )

        assert store.list_backups() == []
        assert len(store.list(OUTFLOW)) == 1

    @pytest.mark.parametrize("amount", ["1e30", "12345678901234567.89"])
    def test_unrepresentable_amount_rejected(self, store, data_file, admin, amount):
        with pytest.raises(ValidationError):
            store.create(
                OUTFLOW, {"description": "Tank", "amount": amount, "date": "2024-03-01"}, admin
            )
        assert not data_file.exists()

    @pytest.mark.parametrize("amount", ["1234567890123.45", "99999999999999.9", "1e20"])
    def test_large_amount_round_trips(self, store, admin, amount):
        created = store.create(
            OUTFLOW, {"description": "Tank", "amount": amount, "date": "2024-03-01"}, admin
        )
        assert store.get_by_id(OUTFLOW, created.id) == created

    def test_leading_equals_is_stored_as_text(self, store, data_file, admin):
        created = store.create(
            OUTFLOW,
            {"description": "=1+1", "amount": "5", "date": "2024-03-01", "notes": "=HYPERLINK(\"x\")"},
            admin,
        )

        sheet = load_workbook(data_file)["Expenses"]
        header = list(COLUMNS[OUTFLOW])
        description = sheet.cell(row=2, column=header.index("description") + 1)
        notes = sheet.cell(row=2, column=header.index("notes") + 1)
        assert description.data_type == "s"
        assert description.value == "=1+1"
        assert notes.data_type == "s"
        assert store.get_by_id(OUTFLOW, created.id) == created

    def test_updated_text_is_stored_as_text(self, store, data_file, admin, gardener_fields):
        created = store.create(OUTFLOW, gardener_fields, admin)
        store.update(OUTFLOW, created.id, {"unit_reference": "=A1"}, admin)

        sheet = load_workbook(data_file)["Expenses"]
        unit = sheet.cell(row=2, column=list(COLUMNS[OUTFLOW]).index("unit_reference") + 1)
        assert unit.data_type == "s"
        assert store.get_by_id(OUTFLOW, created.id).unit_reference == "=A1"

    def test_over_long_text_rejected(self, store, data_file, admin):
        with pytest.raises(ValidationError):
            store.create(
                OUTFLOW, {"description": "x" * 40000, "amount": "1", "date": "2024-03-01"}, admin
            )
        assert not data_file.exists()

    def test_longest_cell_text_round_trips(self, store, admin):
        created = store.create(
            OUTFLOW, {"description": "x" * 32767, "amount": "1", "date": "2024-03-01"}, admin
        )
        assert store.get_by_id(OUTFLOW, created.id) == created


class TestFailures:
    """Tests for storage failures."""

    def test_failed_publish_keeps_previous_version(
        self, store, data_file, admin, gardener_fields, monkeypatch
    ):
        created = store.create(OUTFLOW, gardener_fields, admin)
        before = data_file.read_bytes()

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(workbook_store.os, "replace", broken_replace)
        with pytest.raises(StorageError, match=created.id):
            store.update(OUTFLOW, created.id, {"amount": "1"}, admin)
        monkeypatch.undo()

        assert data_file.read_bytes() == before
        assert [p.name for p in data_file.parent.iterdir()] == [data_file.name]

        # The lock was released: the next mutation goes through.
        assert store.update(OUTFLOW, created.id, {"amount": "2"}, admin).amount == Decimal("2.00")

    def test_corrupt_file(self, store, data_file, admin, gardener_fields):
        data_file.parent.mkdir(parents=True, exist_ok=True)
        data_file.write_bytes(b"not a workbook")
        with pytest.raises(StorageError):
            store.list(OUTFLOW)
        with pytest.raises(StorageError):
            store.create(OUTFLOW, gardener_fields, admin)

    def test_missing_column(self, store, data_file):
        workbook = Workbook()
        workbook.active.title = "Expenses"
        workbook["Expenses"].append([c for c in COLUMNS[OUTFLOW] if c != "amount"])
        workbook.create_sheet("Payments").append(list(COLUMNS[INFLOW]))
        data_file.parent.mkdir(parents=True, exist_ok=True)
        workbook.save(data_file)

        with pytest.raises(StorageError, match="amount"):
            store.list(OUTFLOW)
        assert list(store.list(INFLOW)) == []

    def test_reordered_columns_are_honoured(self, store, data_file, admin):
        header = list(reversed(COLUMNS[INFLOW]))
        workbook = Workbook()
        workbook.active.title = "Expenses"
        workbook["Expenses"].append(list(COLUMNS[OUTFLOW]))
        payments = workbook.create_sheet("Payments")
        payments.append(header)
        data_file.parent.mkdir(parents=True, exist_ok=True)
        workbook.save(data_file)

        created = store.create(
            INFLOW, {"unit_reference": "B-2", "amount": "300", "date": "2024-03-02"}, admin
        )
        row = next(load_workbook(data_file)["Payments"].iter_rows(min_row=2, values_only=True))
        assert row[header.index("unit_reference")] == "B-2"
        assert store.get_by_id(INFLOW, created.id) == created


class TestExport:
    """Tests for exporting the store file."""

    def test_export_is_file_bytes(self, store, data_file, admin, gardener_fields):
        store.create(OUTFLOW, gardener_fields, admin)
        assert store.export_snapshot() == data_file.read_bytes()

    def test_export_creates_empty_file(self, store, data_file):
        assert store.export_snapshot() == data_file.read_bytes()

    def test_round_trip(self, store, tmp_path, admin, treasurer):
        kept = _expense(store, admin, "Security", 3, "12000")
        gone = _expense(store, admin, "Typo", 4)
        store.soft_delete(OUTFLOW, gone.id, admin)
        payment = store.create(
            INFLOW, {"unit_reference": "A-1", "amount": "2500.50", "date": "2024-03-04"}, treasurer
        )
        store.update(INFLOW, payment.id, {"payment_mode": "Cash"}, treasurer)

        copy = tmp_path / "copy" / "restored.xlsx"
        copy.parent.mkdir()
        copy.write_bytes(store.export_snapshot())
        restored = WorkbookStore(copy, tmp_path / "copy-backups")

        for kind in RecordKind:
            assert list(restored.list(kind)) == list(store.list(kind))
        assert [r.id for r in restored.list(OUTFLOW)] == [kept.id]


def test_store_file_never_left_partial(store, data_file, admin, gardener_fields):
    store.create(OUTFLOW, gardener_fields, admin)
    leftovers = [p for p in data_file.parent.iterdir() if p.suffix == ".tmp"]
    assert leftovers == []
    assert os.path.getsize(data_file) > 0


class TestConcurrency:
    """Mutations on one file are serialised, reads see whole versions."""

    def test_parallel_creates_all_land(self, store, admin):
        store.initialize()
        errors = []
        done = threading.Event()

        def writer(n):
            try:
                _expense(store, admin, f"Item {n}", 1 + n % 28)
            except Exception as e:
                errors.append(e)

        def reader():
            while not done.is_set():
                try:
                    list(store.list(OUTFLOW))
                except Exception as e:
                    errors.append(e)

        watcher = threading.Thread(target=reader)
        watcher.start()
        writers = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for thread in writers:
            thread.start()
        for thread in writers:
            thread.join(timeout=30)
        done.set()
        watcher.join(timeout=30)

        assert errors == []
        records = list(store.list(OUTFLOW))
        assert len(records) == 8
        assert len({r.id for r in records}) == 8
        assert len(store.list_backups()) == 8

    def test_parallel_updates_to_one_record_both_apply(
        self, data_file, backup_dir, clock, admin, treasurer, gardener_fields
    ):
        first = WorkbookStore(data_file, backup_dir, clock=clock)
        second = WorkbookStore(data_file, backup_dir, clock=clock)
        created = first.create(OUTFLOW, gardener_fields, admin)

        threads = [
            threading.Thread(
                target=first.update, args=(OUTFLOW, created.id, {"amount": "1800"}, admin)
            ),
            threading.Thread(
                target=second.update, args=(OUTFLOW, created.id, {"notes": "March"}, treasurer)
            ),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        final = first.get_by_id(OUTFLOW, created.id)
        assert final.amount == Decimal("1800.00")
        assert final.notes == "March"
