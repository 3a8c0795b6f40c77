"""
Hotel back-office - dashboard finanziaria
Web app su Streamlit con Google Sheets come storage.

Uno EntityStore per sessione (st.session_state), creato quando l'account è
noto e chiuso al logout. I salvataggi partono in background (debounce);
gli errori arrivano in coda e vengono mostrati come toast al rerun.
"""

import logging
import queue
from datetime import date

import streamlit as st

import config
from core.calc_engine import to_month_key
from core.sheets import is_configured, open_store
from core.storage import SheetsAdapter
from core.store import EntityStore
from reports.export import month_report_xlsx
from reports.pivot import bookings_frame, month_summary, partners_summary, pivot_by_month_room

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

st.set_page_config(
    page_title="Hotel back-office",
    page_icon="🏨",
    layout="wide",
)

st.title("🏨 Hotel back-office")


# ── Sessione ────────────────────────────────────────────────────────────────
def current_account_id():
    """Email dell'utente autenticato, None se nessun login."""
    if not st.user.is_logged_in:
        return None
    return st.user.get("email")


def get_store(account_id) -> EntityStore:
    """Store della sessione; ricreato se cambia l'account."""
    session = st.session_state
    if "store" in session and session.get("store_account") != account_id:
        session["store"].close()
        del session["store"]

    if "store" not in session:
        errors = queue.Queue()
        remote = open_store() if account_id else None
        adapter = SheetsAdapter(remote=remote, account_id=account_id, on_error=errors.put)
        store = EntityStore(adapter)
        with st.spinner("Caricamento dati..."):
            store.hydrate()
        session["store"] = store
        session["store_account"] = account_id
        session["store_errors"] = errors
    return session["store"]


def show_save_errors() -> None:
    errors = st.session_state.get("store_errors")
    while errors is not None and not errors.empty():
        st.toast(f"Salvataggio non riuscito: {errors.get_nowait()}", icon="⚠️")


account_id = current_account_id()

with st.sidebar:
    st.header("Stato connessione")
    if is_configured():
        st.success("✓ Google Sheets connesso")
    else:
        st.error("✗ Credenziali mancanti")
        st.caption("Configura `.streamlit/secrets.toml`")

    if account_id:
        st.caption(f"Account: **{account_id}**")
        if st.button("Esci"):
            if "store" in st.session_state:
                st.session_state["store"].close()
                del st.session_state["store"]
            st.logout()
    else:
        st.warning("Nessun account: i dati non vengono salvati.")

store = get_store(account_id)
show_save_errors()


# ── Mese ────────────────────────────────────────────────────────────────────
months = sorted({b.month_key for b in store.state.bookings} | {to_month_key(date.today())}, reverse=True)
col_month, col_lock = st.columns([3, 1])
with col_month:
    selected = st.selectbox(
        "Mese",
        months,
        index=months.index(store.ui.selected_month_key) if store.ui.selected_month_key in months else 0,
    )
    store.set_selected_month_key(selected)
with col_lock:
    locked = store.is_month_locked(selected)
    if st.button("🔓 Sblocca mese" if locked else "🔒 Blocca mese"):
        store.toggle_month_lock(selected)
        st.rerun()
    if locked:
        st.caption("Mese bloccato: nuove prenotazioni non ammesse.")


# ── KPI ─────────────────────────────────────────────────────────────────────
summary = month_summary(store.state, selected)
k1, k2, k3, k4 = st.columns(4)
k1.metric("Incassi €", f"{summary['incassi']:.2f}", f"{summary['var_incassi_pct']:.1f}%")
k2.metric("Spese €", f"{summary['spese_totali']:.2f}", f"{summary['var_spese_pct']:.1f}%")
k3.metric("Utile netto €", f"{summary['utile_netto']:.2f}", f"{summary['var_utile_pct']:.1f}%")
k4.metric("Previsioni €", f"{summary['previsioni']:.2f}")

st.divider()

# ── Pivot mese × camera ─────────────────────────────────────────────────────
pivot = pivot_by_month_room(store.state)
if pivot.empty:
    st.info("Nessuna prenotazione.")
else:
    st.subheader("Incassi e utile per mese e camera (€)")
    st.dataframe(pivot.round(2), use_container_width=True)

    st.subheader("Prenotazioni del mese")
    df_month = bookings_frame(store.state)
    st.dataframe(df_month[df_month["anno_mese"] == selected], use_container_width=True, hide_index=True)

# ── Partner ─────────────────────────────────────────────────────────────────
df_partners = partners_summary(store.state, selected)
if not df_partners.empty:
    st.subheader("Partner")
    st.dataframe(df_partners, use_container_width=True, hide_index=True)

# ── Export ──────────────────────────────────────────────────────────────────
st.divider()
st.download_button(
    "⬇️ Scarica report Excel",
    month_report_xlsx(store.state, selected),
    file_name=f"report_{selected}.xlsx",
    mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
)
