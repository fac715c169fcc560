"""
Tests for the graph schema module.
"""

import pytest

from fraudlink.graph.schema import (
    Address,
    Device,
    EmailDomain,
    EntityKind,
    IPAddress,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    email_domain,
    node_properties,
    normalize_address,
    phone_prefix,
)


class TestEntityKind:
    """Tests for EntityKind parsing."""

    @pytest.mark.parametrize("raw,expected", [
        ("User", EntityKind.USER),
        ("user", EntityKind.USER),
        ("TRANSACTION", EntityKind.TRANSACTION),
        ("ip_address", EntityKind.IP_ADDRESS),
        ("IPAddress", EntityKind.IP_ADDRESS),
        ("email_domain", EntityKind.EMAIL_DOMAIN),
    ])
    def test_parse(self, raw, expected):
        assert EntityKind.parse(raw) == expected

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            EntityKind.parse("Company")

    def test_category(self):
        assert EntityKind.USER.category == "user"
        assert EntityKind.TRANSACTION.category == "transaction"
        assert EntityKind.DEVICE.category == "other"
        assert EntityKind.DEVICE.is_derived
        assert not EntityKind.USER.is_derived


class TestNormalization:
    """Tests for attribute normalization helpers."""

    def test_email_domain(self):
        assert email_domain("Ann@Example.COM") == "example.com"
        assert email_domain("no-at-sign") is None
        assert email_domain(None) is None

    def test_phone_prefix(self):
        assert phone_prefix("5551234") == "555"
        assert phone_prefix("  ") is None
        assert phone_prefix(None) is None

    def test_normalize_address(self):
        assert normalize_address("12  Rue   Haute") == "12_rue_haute"
        assert normalize_address("   ") is None


class TestUser:
    """Tests for User node."""

    def test_derived_keys(self):
        user = User(
            id="u1",
            name="Alice Moreau",
            email="alice@gmail.com",
            phone="5551234",
            address="12 Rue Haute, Lyon",
        )

        assert user.email_domain == "gmail.com"
        assert user.phone_prefix == "555"
        assert user.address_key == "12_rue_haute,_lyon"
        assert user.name_tokens == {"alice", "moreau"}

    def test_display_name_falls_back_to_id(self):
        assert User(id="u9").display_name == "u9"

    def test_node_properties(self):
        props = node_properties(User(id="u1", name="A"))
        assert props["_type"] == "User"
        assert props["id"] == "u1"


class TestTransaction:
    """Tests for Transaction node."""

    def test_money_transfer(self):
        tx = Transaction(id="t1", origin_user_id="u1", type=TransactionType.PAYMENT)
        assert tx.is_money_transfer

    def test_pending_is_not_money_transfer(self):
        tx = Transaction(
            id="t1",
            origin_user_id="u1",
            type=TransactionType.TRANSFER,
            status=TransactionStatus.PENDING,
        )
        assert not tx.is_money_transfer

    def test_purchase_is_not_money_transfer(self):
        tx = Transaction(id="t1", origin_user_id="u1", type=TransactionType.PURCHASE)
        assert not tx.is_money_transfer

    def test_enum_values_flattened(self):
        props = node_properties(Transaction(id="t1", type=TransactionType.DEPOSIT))
        assert props["type"] == "deposit"
        assert props["status"] == "completed"


class TestSharedEntities:
    """Tests for derived shared-attribute entities."""

    def test_device_type(self):
        assert Device.from_device_id("mobile-abc").device_type == "mobile"
        assert Device.from_device_id("TABLET_9").device_type == "tablet"
        assert Device.from_device_id("xyz").device_type == "unknown"

    def test_ip_address(self):
        local = IPAddress.from_address("192.168.1.4")
        assert local.is_private and local.country == "Local"
        private = IPAddress.from_address("10.2.3.4")
        assert private.is_private and private.country == "Private"
        public = IPAddress.from_address("8.8.8.8")
        assert not public.is_private and public.country == "Unknown"

    def test_email_domain_common(self):
        assert EmailDomain.from_domain("gmail.com").is_common
        assert not EmailDomain.from_domain("corp.example").is_common

    def test_address_from_raw(self):
        address = Address.from_raw(" 12 Rue Haute, Lyon ")
        assert address.id == "12_rue_haute,_lyon"
        assert address.city == "12 Rue Haute"
        assert address.display_address == "12 Rue Haute, Lyon"
