"""
Tests for WhatsApp slash commands.
"""

from datetime import datetime, timezone

import pytest

from importflow.intake import replies
from importflow.intake.commands import CommandHandler, ParsedCommand, parse_command
from importflow.models.order import Order, OrderStatus


@pytest.mark.parametrize(
    "text,expected",
    [
        ("/help", ParsedCommand("help")),
        ("  /STATUS  ", ParsedCommand("status")),
        ("/status all", ParsedCommand("status", ["all"])),
        ("/status limit:5 all", ParsedCommand("status", ["all"], {"limit": "5"})),
        ("/status url:https://x.test", ParsedCommand("status", [], {"url": "https://x.test"})),
    ],
)
def test_parse_command(text, expected):
    assert parse_command(text) == expected


@pytest.mark.parametrize("text", [None, "", "Maria Lopez", "/", "hello /help"])
def test_parse_non_commands(text):
    assert parse_command(text) is None


def make_order(fake_db, customer: str, status: OrderStatus = OrderStatus.PENDING_REVIEW):
    index = len(fake_db.orders) + 1
    order = Order(
        id=f"order-{index}",
        organization_id="org_123",
        package_number=f"Paquete #{index}",
        delivery_id=f"SM{index}",
        customer_name=customer,
        customer_phone="whatsapp:+50377778888",
        status=status,
        created_at=datetime.now(timezone.utc),
    )
    fake_db.orders[order.id] = order
    return order


@pytest.fixture
def user(fake_db):
    return fake_db.users[0]


def test_help(uow_factory, user):
    assert CommandHandler(uow_factory).handle("/help", user) == replies.help_text()


def test_status_without_orders(uow_factory, user):
    reply = CommandHandler(uow_factory).handle("/status", user)

    assert "No pending orders" in reply


def test_status_groups_pending_orders_by_customer(uow_factory, fake_db, user):
    make_order(fake_db, "Ana")
    make_order(fake_db, "Luis")
    make_order(fake_db, "Ana")
    make_order(fake_db, "Ana", status=OrderStatus.REVIEWED)

    reply = CommandHandler(uow_factory).handle("/status", user)

    assert "Pending Orders: 3" in reply
    assert "• Ana: 2 orders" in reply
    assert "• Luis: 1 order" in reply
    assert reply.index("Ana") < reply.index("Luis")


def test_status_is_scoped_to_organization(uow_factory, fake_db, user):
    order = make_order(fake_db, "Other Org Customer")
    fake_db.orders[order.id] = order.model_copy(update={"organization_id": "org_other"})

    reply = CommandHandler(uow_factory).handle("/status", user)

    assert "No pending orders" in reply


def test_unknown_command(uow_factory, user):
    reply = CommandHandler(uow_factory).handle("/delete everything", user)

    assert reply == replies.unknown_command("/delete")
