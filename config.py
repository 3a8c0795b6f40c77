"""
Configurazione centralizzata - modifica qui tabelle, colonne e costanti di calcolo.
"""

import uuid

# Livello di log dell'app Streamlit
LOG_LEVEL = "INFO"

# IVA applicata alle prenotazioni con vat_enabled
VAT_RATE = 0.18

# Finestra di debounce per il salvataggio completo dello stato (secondi)
SAVE_DEBOUNCE_SECONDS = 0.3

# Settimana del mese: ultimo giorno di ogni blocco (1-7, 8-14, 15-21, 22+)
WEEK_BUCKETS = (7, 14, 21)

# Namespace per gli id deterministici (uuid5) degli elementi con id non-UUID
STORAGE_ID_NAMESPACE = uuid.UUID("6f1c2a9e-3b7d-4e55-9a1e-0c8d7b2f4a61")

# Nomi dei fogli (tabelle) nel Google Sheet
TABLE_ROOMS = "rooms"
TABLE_BOOKINGS = "income_records"
TABLE_ROOM_FINANCIALS = "room_financials"
TABLE_PARTNERS = "partners"
TABLE_TRANSACTIONS = "transactions"
TABLE_MONTH_LOCKS = "monthly_controls"
TABLE_FORECASTS = "forecast_records"
TABLE_EXPENSES = "expense_records"

# Discriminatori per le tabelle che contengono più entità
ENTITY_COST_CATALOG = "cost_catalog"
ENTITY_HOTEL_COST = "hotel_cost"
ENTITY_MANUAL_REFERRAL = "manual_referral"
# valore scritto dalle versioni precedenti per i referral manuali
LEGACY_REFERRAL_TYPES = ("income",)

# Colonna che identifica l'account proprietario di ogni riga
ACCOUNT_COLUMN = "user_id"

# Colonne ammesse per tabella (= intestazione del foglio, riga 1).
# Le chiavi non presenti qui vengono rimosse prima della scrittura.
TABLE_COLUMNS = {
    TABLE_ROOMS: [
        "id", "user_id", "room_name", "room_number", "created_at",
    ],
    TABLE_BOOKINGS: [
        "id", "user_id", "room_id", "start_date", "end_date", "month_key",
        "week_of_month", "price_per_night", "nights_count", "income", "amount",
        "extra_expenses", "selected_room_costs", "selected_hotel_costs",
        "partner_referrals", "totals", "metrics", "customer",
        "vat_enabled", "vat_amount", "total_amount",
        "created_at", "updated_at",
    ],
    TABLE_ROOM_FINANCIALS: [
        "id", "user_id", "room_id", "entity_type", "type", "category",
        "label", "unit_cost", "default_qty", "amount", "frequency_type",
        "period_key", "is_active", "created_at", "updated_at",
    ],
    TABLE_PARTNERS: [
        "id", "user_id", "name", "type", "phone", "email",
        "commission_type", "commission_value", "discount_for_guests",
        "location", "notes", "is_active", "created_at", "updated_at",
    ],
    TABLE_TRANSACTIONS: [
        "id", "user_id", "type", "partner_id", "guests_count", "date",
        "notes", "commission_earned", "amount", "month_key", "created_at",
    ],
    TABLE_MONTH_LOCKS: [
        "user_id", "month_key", "is_locked", "locked_at",
    ],
    TABLE_FORECASTS: [
        "id", "user_id", "month_key", "category", "expected_amount",
        "confidence", "period", "type", "created_at",
    ],
    TABLE_EXPENSES: [
        "id", "user_id", "type", "description", "amount", "date",
        "month_key", "room_id", "booking_id", "selected_room_costs",
        "selected_hotel_costs", "created_at", "updated_at",
    ],
}

# Colonne chiave per l'upsert (devono essere sempre valorizzate)
TABLE_KEYS = {
    TABLE_ROOMS: ("id",),
    TABLE_BOOKINGS: ("id",),
    TABLE_ROOM_FINANCIALS: ("id",),
    TABLE_PARTNERS: ("id",),
    TABLE_TRANSACTIONS: ("id",),
    TABLE_MONTH_LOCKS: ("user_id", "month_key"),
    TABLE_FORECASTS: ("id",),
    TABLE_EXPENSES: ("id",),
}

# Catalogo costi camera di default (id, etichetta, costo unitario, quantità).
# Usato quando l'account non ha ancora un catalogo salvato.
DEFAULT_ROOM_COSTS = [
    ("rc-001", "Slippers", 2.99, 2),
    ("rc-002", "Toiletry kit", 0.649, 1),
    ("rc-003", "Body lotion", 1.416, 1),
    ("rc-004", "Soaps", 0.912, 2),
    ("rc-005", "Coffee", 1.99, 4),
    ("rc-006", "Candies", 0.575, 2),
    ("rc-007", "Snacks", 0.69, 2),
    ("rc-008", "Coffee capsules", 2.87, 1),
    ("rc-009", "Cleaning supplies", 52.0, 1),
    ("rc-010", "Toilet paper", 6.0, 2),
    ("rc-011", "Mineral water", 36.0, 1),
    ("rc-012", "Ice pops", 7.08, 1),
]
