"""
Errori del livello di persistenza (Google Sheets).

I rifiuti di validazione (mese bloccato, sovrapposizione) NON sono eccezioni:
i mutatori dello store restituiscono False.
"""

from typing import Dict


class StorageError(Exception):
    """Base per ogni errore di lettura/scrittura remota."""


class RemoteStoreError(StorageError):
    """Errore di trasporto o API di Google Sheets."""


class NotAuthenticatedError(StorageError):
    """Nessun account autenticato: distinto da 'account vuoto'."""


class MissingKeyError(StorageError):
    """Riga senza colonna chiave: errore di forma dello schema, non di rete."""

    def __init__(self, table: str, column: str, row_index: int):
        self.table = table
        self.column = column
        self.row_index = row_index
        super().__init__(f"Chiave '{column}' mancante per la tabella '{table}' (riga {row_index})")


class SaveError(StorageError):
    """Salvataggio parziale: elenca le tabelle non salvate."""

    def __init__(self, failures: Dict[str, str]):
        self.failures = dict(failures)
        super().__init__(f"Salvataggio fallito per: {', '.join(self.failures)}")

    @property
    def tables(self):
        return list(self.failures)
