"""
Modelli dati: camere, prenotazioni, catalogo costi, costi hotel, partner,
referral, blocchi mese, previsioni, spese e lo stato aggregato AppState.

Tutte le entità sono immutabili (frozen): ogni modifica produce una nuova
istanza con dataclasses.replace.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    created_at: str
    number: Optional[str] = None


@dataclass(frozen=True)
class SelectedCost:
    """Snapshot di una voce di catalogo al momento della selezione."""
    catalog_id: str
    label_snapshot: str
    unit_cost_snapshot: float
    qty: int
    total: float            # unit_cost_snapshot * qty


@dataclass(frozen=True)
class PartnerReferral:
    """Ospiti di una prenotazione inviati a un partner."""
    partner_id: str
    partner_name: str       # snapshot del nome
    guests_count: int
    commission_earned: float
    date: date


@dataclass(frozen=True)
class Customer:
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None


@dataclass(frozen=True)
class BookingTotals:
    total_room_costs: float = 0.0
    total_hotel_costs: float = 0.0
    total_order_expenses: float = 0.0


@dataclass(frozen=True)
class BookingMetrics:
    potential_profit: float = 0.0
    gross_profit: float = 0.0
    net_profit: float = 0.0


@dataclass(frozen=True)
class BookingInput:
    """Dati grezzi di una prenotazione, prima del calcolo dei campi derivati."""
    room_id: str
    start_date: date
    end_date: date
    price_per_night: float
    extra_expenses: float = 0.0
    selected_room_costs: Tuple[SelectedCost, ...] = ()
    selected_hotel_costs: Tuple[SelectedCost, ...] = ()
    partner_referrals: Optional[Tuple[PartnerReferral, ...]] = None
    vat_enabled: bool = False
    customer: Optional[Customer] = None
    id: Optional[str] = None
    created_at: Optional[str] = None


@dataclass(frozen=True)
class Booking:
    """Prenotazione completa. Si costruisce solo con normalize_and_compute_booking."""
    id: str
    room_id: str
    start_date: date
    end_date: date              # esclusa (giorno di check-out)
    month_key: str              # YYYY-MM di start_date
    week_of_month: int          # 1..4
    price_per_night: float
    nights_count: int
    income: float
    extra_expenses: float
    selected_room_costs: Tuple[SelectedCost, ...]
    selected_hotel_costs: Tuple[SelectedCost, ...]
    totals: BookingTotals
    metrics: BookingMetrics
    created_at: str
    updated_at: str
    total_amount: float         # income + IVA (= income se IVA disattiva)
    partner_referrals: Optional[Tuple[PartnerReferral, ...]] = None
    vat_enabled: bool = False
    vat_amount: Optional[float] = None
    customer: Optional[Customer] = None


@dataclass(frozen=True)
class CostCatalogItem:
    """Voce di catalogo: modello per gli snapshot SelectedCost."""
    id: str
    type: str               # "room" | "hotel"
    label: str
    unit_cost: float
    default_qty: int
    is_active: bool = True
    category: Optional[str] = None  # "base" | "treat" | "extra"
    room_id: Optional[str] = None   # voce aggiunta da una camera


HOTEL_COST_CATEGORIES = (
    "employees", "arnona", "electricity", "water",
    "maintenance", "cleaning", "room_rent", "other",
)
FREQUENCY_TYPES = ("monthly", "quarterly", "yearly")


@dataclass(frozen=True)
class HotelCost:
    """Costo fisso dell'hotel, attivo per un periodo mensile/trimestrale/annuale."""
    id: str
    label: str
    amount: float
    category: str           # vedi HOTEL_COST_CATEGORIES
    frequency_type: str     # "monthly" | "quarterly" | "yearly"
    period_key: str         # "2026-02" | "2026-Q1" | "2026"
    created_at: str
    is_active: bool = True
    updated_at: Optional[str] = None


PARTNER_TYPES = ("restaurant", "spa", "shop", "tour", "attraction", "other")


@dataclass(frozen=True)
class Partner:
    """Attività convenzionata: l'hotel guadagna una commissione sugli ospiti inviati."""
    id: str
    name: str
    type: str               # vedi PARTNER_TYPES
    phone: str
    email: str
    commission_type: str    # "percentage" | "fixed"
    commission_value: float
    created_at: str
    discount_for_guests: Optional[float] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = True
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class ManualReferral:
    """Referral a un partner non legato a una prenotazione."""
    id: str
    partner_id: str
    guests_count: int
    date: date
    commission_earned: float
    month_key: str
    created_at: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class PartnerStats:
    partner_id: str
    total_revenue: float
    total_referrals: int
    total_guests: int


@dataclass(frozen=True)
class MonthLock:
    month_key: str
    is_locked: bool
    locked_at: Optional[str] = None


@dataclass(frozen=True)
class Forecast:
    id: str
    month_key: str
    category: str
    expected_amount: float
    confidence: int         # 0..100
    created_at: str
    period: str = "monthly"
    type: str = "income"    # "income" | "expense"


@dataclass(frozen=True)
class Expense:
    id: str
    type: str               # "booking" | "room" | "hotel" | "custom"
    description: str
    amount: float
    date: date
    month_key: str
    created_at: str
    updated_at: str
    room_id: Optional[str] = None
    booking_id: Optional[str] = None
    selected_room_costs: Optional[Tuple[SelectedCost, ...]] = None
    selected_hotel_costs: Optional[Tuple[SelectedCost, ...]] = None


@dataclass(frozen=True)
class AppState:
    """Radice aggregata: tutte le collezioni di un account."""
    rooms: Tuple[Room, ...] = ()
    bookings: Tuple[Booking, ...] = ()
    cost_catalog: Tuple[CostCatalogItem, ...] = ()
    hotel_costs: Tuple[HotelCost, ...] = ()
    partners: Tuple[Partner, ...] = ()
    manual_referrals: Tuple[ManualReferral, ...] = ()
    month_locks: Dict[str, MonthLock] = field(default_factory=dict)
    forecasts: Tuple[Forecast, ...] = ()
    expenses: Tuple[Expense, ...] = ()

    @classmethod
    def empty(cls) -> "AppState":
        return cls()


@dataclass
class UIState:
    selected_month_key: str
    selected_room_id: Optional[str] = None
    is_hydrated: bool = False
