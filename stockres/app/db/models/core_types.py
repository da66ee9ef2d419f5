import enum


class ReservationStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"


# Réservations qui retiennent du stock
ACTIVE_STATUSES = {
    ReservationStatus.pending,
    ReservationStatus.confirmed,
}


class StorageBackend(str, enum.Enum):
    sql = "sql"
    supabase = "supabase"


class CompletionPolicy(str, enum.Enum):
    check = "check"
    finalize = "finalize"
    consume = "consume"
