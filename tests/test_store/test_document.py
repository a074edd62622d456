"""Tests for document entities and their JSON form."""

from datetime import UTC, datetime, timedelta

import pytest

from stamp_server.store import (
    AccessCredential,
    Customer,
    Document,
    LogEntry,
    Operator,
    Redemption,
    Stamp,
    new_id,
)

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _sample_document() -> Document:
    customer = Customer(id="c1", name="Ana", phone="0600000000", created_at=T0)
    stamps = [
        Stamp(id="s1", customer_id="c1", created_at=T0, operator="api", redeemed=True,
              redeemed_at=T0),
        Stamp(id="s2", customer_id="c1", created_at=T0, operator="api"),
    ]
    redemption = Redemption(
        id="r1", customer_id="c1", stamp_ids=["s1"], operator="api", created_at=T0, note="coffee"
    )
    log = LogEntry(id="l1", type="stamp", timestamp=T0, customer_id="c1", operator="api",
                   details={"stampId": "s2"})
    return Document(
        customers=[customer],
        stamps=stamps,
        redemptions=[redemption],
        logs=[log],
        api_keys=[AccessCredential(value="k1", owner_ref="front-desk")],
        operators=[Operator(id="o1", name="Maria", pin_hash="$2b$12$hash", created_at=T0)],
        tokens=[
            AccessCredential(
                value="t1",
                owner_ref="o1",
                created_at=T0,
                expires_at=T0 + timedelta(minutes=60),
            )
        ],
    )


class TestIdentifiers:
    @pytest.mark.unit
    def test_new_id_is_unique_hex(self):
        ids = {new_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(len(i) == 32 and int(i, 16) >= 0 for i in ids)


class TestSerialization:
    """Documents keep the camelCase collection layout used on disk."""

    @pytest.mark.unit
    def test_top_level_keys(self):
        data = Document().to_dict()
        assert set(data) == {
            "customers",
            "stamps",
            "redemptions",
            "logs",
            "apiKeys",
            "operators",
            "tokens",
        }
        assert all(value == [] for value in data.values())

    @pytest.mark.unit
    def test_round_trip_preserves_entities(self):
        original = _sample_document()
        restored = Document.from_dict(original.to_dict())
        assert restored == original

    @pytest.mark.unit
    def test_redemption_serializes_count(self):
        data = _sample_document().to_dict()
        assert data["redemptions"][0]["count"] == 1
        assert data["redemptions"][0]["stampIds"] == ["s1"]

    @pytest.mark.unit
    def test_stamp_uses_camel_case_keys(self):
        data = _sample_document().to_dict()["stamps"][1]
        assert data["customerId"] == "c1"
        assert data["redeemed"] is False
        assert data["redeemedAt"] is None

    @pytest.mark.unit
    def test_api_key_without_dates_omits_them(self):
        data = AccessCredential(value="k", owner_ref="o").to_dict()
        assert data == {"value": "k", "ownerRef": "o"}

    @pytest.mark.unit
    def test_missing_collections_load_as_empty(self):
        doc = Document.from_dict({"customers": []})
        assert doc.stamps == []
        assert doc.tokens == []

    @pytest.mark.unit
    def test_naive_timestamps_are_read_as_utc(self):
        stamp = Stamp.from_dict(
            {"id": "s", "customerId": "c", "createdAt": "2026-03-02T09:00:00"}
        )
        assert stamp.created_at == T0

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "entity, data",
        [
            (Customer, {"id": "c", "name": "Ana", "phone": "1", "createdAt": None}),
            (Stamp, {"id": "s", "customerId": "c", "createdAt": ""}),
            (Redemption, {"id": "r", "customerId": "c", "stampIds": []}),
            (LogEntry, {"id": "l", "type": "stamp", "timestamp": None}),
            (Operator, {"id": "o", "name": "Maria", "pinHash": "x", "createdAt": ""}),
        ],
    )
    def test_required_timestamps_are_enforced(self, entity, data):
        with pytest.raises(ValueError):
            entity.from_dict(data)

    @pytest.mark.unit
    def test_credential_timestamps_are_optional(self):
        key = AccessCredential.from_dict({"value": "k", "createdAt": None, "expiresAt": ""})
        assert key.created_at is None
        assert key.expires_at is None

    @pytest.mark.unit
    def test_non_object_root_is_rejected(self):
        with pytest.raises(TypeError):
            Document.from_dict([])

    @pytest.mark.unit
    def test_malformed_entry_is_rejected(self):
        with pytest.raises(KeyError):
            Document.from_dict({"customers": [{"name": "no id"}]})


class TestLookups:
    @pytest.mark.unit
    def test_customer_lookups(self):
        doc = _sample_document()
        assert doc.customer_by_id("c1").name == "Ana"
        assert doc.customer_by_phone("0600000000").id == "c1"
        assert doc.customer_by_id("missing") is None

    @pytest.mark.unit
    def test_stamps_for_keeps_insertion_order(self):
        doc = _sample_document()
        assert [s.id for s in doc.stamps_for("c1")] == ["s1", "s2"]

    @pytest.mark.unit
    def test_token_expiry(self):
        token = AccessCredential(value="t", owner_ref="o", expires_at=T0)
        assert not token.is_expired(T0)
        assert token.is_expired(datetime(2026, 3, 2, 9, 1, tzinfo=UTC))
        assert not AccessCredential(value="k", owner_ref="o").is_expired(T0)

    @pytest.mark.unit
    def test_stamp_and_redemption_lookups(self):
        doc = _sample_document()
        assert doc.stamp_by_id("s2").operator == "api"
        assert doc.redemption_by_id("r1").note == "coffee"
        assert doc.stamp_by_id("missing") is None
        assert doc.redemption_by_id("missing") is None
