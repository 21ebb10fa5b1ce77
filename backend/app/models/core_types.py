import enum

class POStatus(str, enum.Enum):
    open = "Open"
    partially_received = "PartiallyReceived"
    received = "Received"
    cancelled = "Cancelled"
    closed = "Closed"

# Statuts terminaux : ni réception ni annulation de réception
TERMINAL_PO_STATUSES = {
    POStatus.cancelled,
    POStatus.closed,
}

class AdjustmentStatus(str, enum.Enum):
    open = "Open"
    completed = "Completed"
    cancelled = "Cancelled"

class TransferStatus(str, enum.Enum):
    open = "Open"
    in_transit = "InTransit"
    completed = "Completed"
    cancelled = "Cancelled"

class CountStatus(str, enum.Enum):
    open = "Open"
    in_progress = "InProgress"
    completed = "Completed"
    cancelled = "Cancelled"

class UnreceiveMode(str, enum.Enum):
    entry_ids = "receiveLineIds"
    lifo = "items"
    all = "unreceiveAll"
