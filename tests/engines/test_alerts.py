"""
Tests for stock / maintenance / variance classification and the alert feed.

Covers:
- StockStatus boundaries
- MaintenanceStatus horizon and day counts
- VarianceStatus signs
- Alert identity (tagged ids, legacy numeric scheme)
- Feed messages and priority ordering
- Read / unread partition and acknowledgement helpers
"""

import logging
from datetime import date, timedelta
from decimal import Decimal

import pytest

from inventory_engines import alerts as alerts_module
from inventory_engines.alerts import (
    LEGACY_MAINTENANCE_ID_OFFSET,
    AlertClassifier,
    AlertId,
    AlertKind,
    AlertSource,
    MaintenanceStatus,
    Severity,
    StockStatus,
    VarianceStatus,
    collation_key,
    maintenance_status,
    mark_all_read,
    mark_read,
    stock_status,
    variance_status,
)
from inventory_kernel.domain.records import CountLine
from tests.builders import TODAY, make_count, make_maintenance, make_product


class TestStockStatus:
    @pytest.mark.parametrize("quantity,expected", [
        ("0", StockStatus.CRITICAL),
        ("-2", StockStatus.CRITICAL),
        ("1", StockStatus.LOW),
        ("5", StockStatus.LOW),
        ("6", StockStatus.NORMAL),
    ])
    def test_boundaries(self, quantity, expected):
        assert stock_status(make_product(quantity=quantity, critical_level="5")) == expected


class TestMaintenanceStatus:
    def test_no_next_date(self):
        result = maintenance_status(None, TODAY)
        assert result.status == MaintenanceStatus.NONE
        assert not result.unparsable

    def test_unparsable_next_date(self):
        result = maintenance_status("bientôt", TODAY)
        assert result.status == MaintenanceStatus.NONE
        assert result.unparsable
        assert result.due_date is None

    def test_far_future_is_parsable(self):
        result = maintenance_status("2025-01-01", TODAY)
        assert result.status == MaintenanceStatus.NONE
        assert not result.unparsable

    def test_classifier_parses_next_date_once(self, monkeypatch, caplog):
        calls = []

        def counting_parse(value, tz):
            calls.append(value)
            return None

        monkeypatch.setattr(alerts_module, "parse_calendar_date", counting_parse)
        record = make_maintenance(id=9, next_maintenance_date="bientôt")

        with caplog.at_level(logging.WARNING, logger="inventory_kernel"):
            assert AlertClassifier().maintenance_alert(record, TODAY) is None

        assert calls == ["bientôt"]
        warnings = [r for r in caplog.records if r.message == "maintenance_next_date_unparsable"]
        assert [r.maintenance_id for r in warnings] == [9]

    def test_due_today_is_overdue(self):
        result = maintenance_status(TODAY, TODAY)
        assert result.status == MaintenanceStatus.OVERDUE
        assert result.days_overdue == 0

    def test_past_is_overdue(self):
        result = maintenance_status("2024-06-10", TODAY)
        assert result.status == MaintenanceStatus.OVERDUE
        assert result.days_overdue == 5

    def test_within_horizon_is_upcoming(self):
        result = maintenance_status(TODAY + timedelta(days=3), TODAY)
        assert result.status == MaintenanceStatus.UPCOMING
        assert result.days_remaining == 3

    def test_horizon_end_is_inclusive(self):
        result = maintenance_status(TODAY + timedelta(days=7), TODAY, horizon_days=7)
        assert result.status == MaintenanceStatus.UPCOMING
        assert result.days_remaining == 7

    def test_beyond_horizon(self):
        result = maintenance_status(TODAY + timedelta(days=8), TODAY, horizon_days=7)
        assert result.status == MaintenanceStatus.NONE


class TestVarianceStatus:
    @pytest.mark.parametrize("theoretical,counted,expected", [
        ("10", "12", VarianceStatus.POSITIVE),
        ("10", "7", VarianceStatus.NEGATIVE),
        ("10", "10", VarianceStatus.CONFORMING),
    ])
    def test_sign(self, theoretical, counted, expected):
        line = CountLine(product_id=1, theoretical_qty=Decimal(theoretical), counted_qty=Decimal(counted))
        assert variance_status(line) == expected


class TestAlertId:
    def test_keys(self):
        assert AlertId.product(1).key == "product:1"
        assert AlertId.maintenance(9).key == "maintenance:9"

    def test_from_key(self):
        assert AlertId.from_key("maintenance:9") == AlertId(AlertSource.MAINTENANCE, 9)

    @pytest.mark.parametrize("key", ["product", "vehicle:1", "product:x"])
    def test_malformed_key_rejected(self, key):
        with pytest.raises(ValueError):
            AlertId.from_key(key)

    def test_legacy_ids(self):
        assert AlertId.product(1).legacy_id() == 1
        assert AlertId.maintenance(9).legacy_id() == 9 + LEGACY_MAINTENANCE_ID_OFFSET

    def test_from_legacy(self):
        assert AlertId.from_legacy(42) == AlertId.product(42)
        assert AlertId.from_legacy(100009) == AlertId.maintenance(9)

    def test_tagged_ids_never_collide(self):
        """A product id at the offset no longer aliases a maintenance alert."""
        product = AlertId.product(LEGACY_MAINTENANCE_ID_OFFSET + 9)
        maintenance = AlertId.maintenance(9)
        assert product != maintenance
        assert product.legacy_id() == maintenance.legacy_id()


class TestAlertMessages:
    def setup_method(self):
        self.classifier = AlertClassifier()

    def test_out_of_stock(self):
        alert = self.classifier.stock_alert(make_product(quantity="0"))
        assert alert.kind == AlertKind.STOCK_CRITICAL
        assert alert.severity == Severity.CRITICAL
        assert alert.message == "Stock épuisé"

    def test_negative_stock_is_very_low(self):
        alert = self.classifier.stock_alert(make_product(quantity="-1"))
        assert alert.message == "Stock très faible (-1 unités restantes)"

    def test_low_stock(self):
        alert = self.classifier.stock_alert(make_product(quantity="2", critical_level="5"))
        assert alert.kind == AlertKind.STOCK_LOW
        assert alert.severity == Severity.WARNING
        assert alert.message == "Stock faible (2 unités restantes, seuil: 5)"

    def test_normal_stock_has_no_alert(self):
        assert self.classifier.stock_alert(make_product(quantity="50")) is None

    def test_overdue_maintenance(self):
        alert = self.classifier.maintenance_alert(make_maintenance(9, "2024-06-12"), TODAY)
        assert alert.kind == AlertKind.MAINTENANCE_OVERDUE
        assert alert.severity == Severity.CRITICAL
        assert alert.message == (
            "Maintenance en retard de 3 jour(s) : Vidange (AB-123-CD), prévue le 2024-06-12"
        )

    def test_upcoming_maintenance(self):
        alert = self.classifier.maintenance_alert(make_maintenance(9, "2024-06-18"), TODAY)
        assert alert.kind == AlertKind.MAINTENANCE_UPCOMING
        assert alert.severity == Severity.INFO
        assert alert.days_remaining == 3
        assert alert.message.startswith("Maintenance à venir dans 3 jour(s)")

    def test_vehicle_without_plate(self):
        alert = self.classifier.maintenance_alert(
            make_maintenance(9, TODAY, plate=None, vehicle_id=4), TODAY
        )
        assert alert.title == "véhicule #4"
        assert alert.sort_name == ""


class TestBuildFeed:
    """Unified feed contents and ordering."""

    def setup_method(self):
        self.classifier = AlertClassifier(horizon_days=7)

    def test_low_product_and_maintenance_due_today(self):
        feed = self.classifier.build_feed(
            products=[make_product(id=1, quantity="2", critical_level="5")],
            maintenances=[make_maintenance(9, TODAY)],
            today=TODAY,
        )

        assert [a.kind for a in feed] == [AlertKind.MAINTENANCE_OVERDUE, AlertKind.STOCK_LOW]
        assert [a.id.legacy_id() for a in feed] == [9 + LEGACY_MAINTENANCE_ID_OFFSET, 1]
        assert feed[0].message.startswith("Maintenance en retard")
        assert feed[1].message.startswith("Stock faible")

    def test_priority_tiers_and_name_order(self):
        products = [
            make_product(id=1, name="abrasif", quantity="3"),
            make_product(id=2, name="Zinc", quantity="0"),
            make_product(id=3, name="émeri", quantity="0"),
            make_product(id=4, name="Normal", quantity="100"),
        ]
        maintenances = [
            make_maintenance(10, TODAY, plate="ZZ-999-ZZ"),
            make_maintenance(11, TODAY, plate=None),
            make_maintenance(12, TODAY + timedelta(days=2), plate="AA-111-AA"),
            make_maintenance(13, TODAY + timedelta(days=30)),
            make_maintenance(14, None),
        ]

        feed = self.classifier.build_feed(products=products, maintenances=maintenances, today=TODAY)

        assert [a.id.key for a in feed] == [
            "product:3",       # émeri, critical
            "product:2",       # Zinc, critical
            "maintenance:11",  # overdue, no plate
            "maintenance:10",  # overdue
            "maintenance:12",  # upcoming
            "product:1",       # abrasif, low
        ]
        assert [a.priority for a in feed] == [0, 0, 0, 0, 1, 2]

    def test_empty_inputs(self):
        assert self.classifier.build_feed(products=[], maintenances=[], today=TODAY) == ()

    def test_deterministic(self):
        products = [make_product(id=i, name=f"P{i % 3}", quantity=str(i % 4)) for i in range(12)]
        first = self.classifier.build_feed(products=products, maintenances=[], today=TODAY)
        second = self.classifier.build_feed(products=list(reversed(products)), maintenances=[], today=TODAY)
        assert first == second

    def test_duplicate_source_records_collapse(self):
        feed = self.classifier.build_feed(
            products=[make_product(id=1, quantity="0"), make_product(id=1, quantity="0")],
            maintenances=[],
            today=TODAY,
        )
        assert len(feed) == 1


class TestCollationKey:
    def test_accents_and_case_ignored_first(self):
        names = ["Zinc", "émeri", "Abrasif", "eponge"]
        assert sorted(names, key=collation_key) == ["Abrasif", "émeri", "eponge", "Zinc"]


class TestReadPartition:
    def setup_method(self):
        self.classifier = AlertClassifier()
        self.feed = self.classifier.build_feed(
            products=[
                make_product(id=1, name="A", quantity="0"),
                make_product(id=2, name="B", quantity="2"),
                make_product(id=3, name="C", quantity="3"),
            ],
            maintenances=[make_maintenance(9, TODAY), make_maintenance(10, date(2024, 6, 17))],
            today=TODAY,
        )

    def test_nothing_read(self):
        summary = self.classifier.summarize(alerts=self.feed, read_ids=frozenset())

        assert summary.unread_count == 5
        assert summary.read == ()
        assert summary.unread_critical_count == 1
        assert summary.unread_low_count == 2
        assert summary.unread_maintenance_count == 2

    def test_counts_cover_unread_only(self):
        read_ids = mark_read(frozenset(), AlertId.product(2))
        read_ids = mark_read(read_ids, AlertId.maintenance(9))

        summary = self.classifier.summarize(alerts=self.feed, read_ids=read_ids)

        assert summary.unread_low_count == 1
        assert summary.unread_maintenance_count == 1
        assert {a.id for a in summary.read} == {AlertId.product(2), AlertId.maintenance(9)}
        assert summary.total == 5

    def test_partition_preserves_feed_order(self):
        summary = self.classifier.summarize(alerts=self.feed, read_ids={AlertId.product(1)})
        assert list(summary.unread) == [a for a in self.feed if a.id != AlertId.product(1)]

    def test_mark_all_read_prunes_stale_ids(self):
        stale = {AlertId.product(77)}
        read_ids = mark_all_read(self.feed)

        assert read_ids == frozenset(a.id for a in self.feed)
        assert not (read_ids & stale)
        summary = self.classifier.summarize(alerts=self.feed, read_ids=read_ids)
        assert summary.unread_count == 0

    def test_mark_read_returns_new_set(self):
        original = frozenset({AlertId.product(1)})
        updated = mark_read(original, AlertId.product(2))
        assert original == frozenset({AlertId.product(1)})
        assert updated == {AlertId.product(1), AlertId.product(2)}


class TestVarianceLines:
    def test_non_conforming_lines_by_default(self):
        counts = [make_count(1, "2024-06-10", [(1, 10, 12), (2, 5, 5), (3, 8, 6)])]

        lines = AlertClassifier().variance_lines(counts)

        assert [(line.product_id, line.variance) for line in lines] == [
            (1, Decimal("2")),
            (3, Decimal("-2")),
        ]

    def test_filter_by_status(self):
        counts = [make_count(1, "2024-06-10", [(1, 10, 12), (2, 5, 5), (3, 8, 6)])]

        negative = AlertClassifier().variance_lines(counts, status=VarianceStatus.NEGATIVE)
        conforming = AlertClassifier().variance_lines(counts, status=VarianceStatus.CONFORMING)

        assert [line.product_id for line in negative] == [3]
        assert [line.product_id for line in conforming] == [2]
