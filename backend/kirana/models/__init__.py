from .inventory import Item
from .parties import Party, PartyType
from .transactions import Transaction, TransactionItem, TransactionType, PaymentMode
from .reminders import Reminder, ReminderKind, ReminderRef

__all__ = [
    'Item',
    'Party', 'PartyType',
    'Transaction', 'TransactionItem', 'TransactionType', 'PaymentMode',
    'Reminder', 'ReminderKind', 'ReminderRef',
]
