"""Outbound WhatsApp reply texts."""

from collections import Counter
from decimal import Decimal
from typing import Iterable

from importflow import config
from importflow.models.order import ExtractionStatus, Order


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _money(amount: Decimal | None) -> str:
    return f"${amount:.2f}" if amount is not None else "unknown"


def dropped_notice(count: int) -> str:
    return (
        f"⚠️ {_plural(count, 'earlier screenshot')} expired "
        f"(no customer name within {config.PAIRING_WINDOW_SECONDS:g}s) and "
        f"{'was' if count == 1 else 'were'} discarded. Resend {'it' if count == 1 else 'them'} "
        "with the customer name."
    )


def abandoned_notice(count: int) -> str:
    return (
        f"⚠️ {_plural(count, 'earlier screenshot')} sent without a name "
        f"{'was' if count == 1 else 'were'} not included in this order. "
        f"Resend {'it' if count == 1 else 'them'} with the customer name."
    )


def order_created(order: Order, dropped: int = 0, abandoned: int = 0) -> str:
    extraction = order.extraction
    if extraction.items:
        items_summary = "\n".join(
            f"• {item.name} x{item.quantity} - {_money(item.total_value)}"
            for item in extraction.items
        )
    else:
        items_summary = "No items extracted"

    lines = [
        f"✅ {order.package_number} created for {order.customer_name}",
        "",
        f"📸 {_plural(order.screenshot_count, 'screenshot')} attached",
        "",
        items_summary,
        "",
        f"Total: {_money(order.declared_value)}",
    ]
    if order.duty is not None:
        lines.append(
            f"Duty: {_money(order.duty.duty)} | VAT: {_money(order.duty.vat)} | "
            f"Fees: {_money(order.duty.total_fees)}"
        )
    if extraction.status != ExtractionStatus.COMPLETED:
        lines += ["", "⚠️ Some details could not be read. Please review them in the app."]
    lines += [
        "",
        "Status: Pending Review",
        f"Send more screenshots for {order.customer_name} or send a new customer name.",
    ]
    if dropped:
        lines += ["", dropped_notice(dropped)]
    if abandoned:
        lines += ["", abandoned_notice(abandoned)]
    return "\n".join(lines)


def name_set(name: str, dropped: int = 0) -> str:
    if dropped:
        return f"✅ Customer name set: {name}\n\n{dropped_notice(dropped)}"
    return f"✅ Customer name set: {name}\n\nNow send screenshots for this customer."


def not_registered() -> str:
    return (
        "❌ Phone number not registered\n\n"
        "Please link your WhatsApp number in the ImportFlow app."
    )


def media_fetch_failed() -> str:
    return "❌ Error downloading screenshots. Please send them again."


def retry_later() -> str:
    return "⏳ We are busy processing your previous messages. Please try again in a moment."


def processing_failed() -> str:
    return "❌ Error processing your message\n\nPlease try again or contact support."


def usage_hint() -> str:
    return "📱 Send:\n• Customer name (text)\n• Order screenshots (images)\n• /help for commands"


def unknown_command(command: str) -> str:
    return f"❓ Unknown command: {command}\n\nType /help to see available commands."


def help_text() -> str:
    return (
        "📱 *ImportFlow WhatsApp*\n\n"
        "*How to add orders:*\n"
        "1️⃣ Send the customer name\n"
        "2️⃣ Send the order screenshots\n"
        "3️⃣ Done! The order appears in your app\n\n"
        "*Commands:*\n"
        "/status - pending orders by customer\n"
        "/help - this message\n\n"
        "💡 Send the name and screenshots together for fastest processing."
    )


def pending_status(orders: Iterable[Order]) -> str:
    by_customer = Counter(order.customer_name or "Unknown" for order in orders)
    total = sum(by_customer.values())
    if total == 0:
        return (
            "✅ No pending orders\n\nAll orders have been reviewed!\n\n"
            "Send customer name + screenshots to create new orders."
        )
    customer_list = "\n".join(
        f"• {name}: {_plural(count, 'order')}" for name, count in by_customer.most_common()
    )
    return (
        f"📊 Pending Orders: {total}\n\n{customer_list}\n\n"
        "Review in the ImportFlow app."
    )
