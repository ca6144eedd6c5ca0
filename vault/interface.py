"""
vault/interface.py -- The storage contract the HTTP layer depends on.

One explicit Protocol instead of a duck-typed store: route handlers are typed
against VaultStorage, and VaultStore in vault/store.py is the SQLAlchemy
implementation. Tests may substitute any object with these methods.

Conventions shared by every implementation:
  - get_* raises core.errors.NoData when nothing matches.
  - delete_* returns the number of removed records (0 is not an error).
  - update_* returns True if a record was updated.
  - Secret fields are plaintext on the way in and on the way out.
"""

from typing import Protocol

from vault.models import Card, Credentials, Note


class VaultStorage(Protocol):
    def save_credentials(self, creds: Credentials) -> None: ...

    def get_credentials(self, query: Credentials) -> list[Credentials]: ...

    def update_credentials(self, creds: Credentials) -> bool: ...

    def delete_credentials(self, query: Credentials) -> int: ...

    def save_note(self, note: Note) -> None: ...

    def get_notes(self, query: Note) -> list[Note]: ...

    def update_note(self, note: Note) -> bool: ...

    def delete_notes(self, query: Note) -> int: ...

    def save_card(self, card: Card) -> None: ...

    def get_cards(self, query: Card) -> list[Card]: ...

    def delete_cards(self, query: Card) -> int: ...

    def close(self) -> None: ...
