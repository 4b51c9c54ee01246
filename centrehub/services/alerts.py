"""
New-expense alerts shared to the centre's WhatsApp group.
The server only builds the share link; the client opens it.
"""
from typing import Optional
from urllib.parse import quote

from ..config import settings
from ..schemas.expenses import ExpenseResponse


def expense_alert_text(expense: ExpenseResponse) -> str:
    occurred = expense.date.isoformat() if expense.date else expense.timestamp.date().isoformat()
    lines = [
        f"💰 New Expense Added - {expense.centre} Centre",
        "",
        f"📋 Item: {expense.item}",
        f"💰 Amount: ₹{expense.amount:.2f}",
        f"📂 Category: {expense.category}",
        f"💳 Payment: {expense.payment_method.upper()}",
        f"📅 Date: {occurred}",
        f"👤 Added by: {expense.created_by}",
    ]
    if expense.note:
        lines += ["", f"📝 Note: {expense.note}"]
    lines += ["", f"#AaryavartExpense #{expense.centre.replace(' ', '')}"]
    return "\n".join(lines)


def expense_alert_url(expense: ExpenseResponse, group_url: Optional[str] = None) -> Optional[str]:
    """Share link carrying the alert text, or None when no group is configured."""
    base = group_url if group_url is not None else settings.whatsapp_group_url
    if not base:
        return None
    sep = "&" if "?" in base else "?"
    return f"{base}{sep}text={quote(expense_alert_text(expense))}"
