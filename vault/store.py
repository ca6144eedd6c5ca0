"""
vault/store.py -- SQLAlchemy-backed persistence for credentials, notes and cards.

Uses SQLAlchemy Core (not ORM) so the dataclasses in vault/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. VaultStore is the repository (one clean
interface per entity, see vault/interface.py). The _row_to_* functions are the
mappers; they are also where secret fields are decrypted.

Encryption: every secret field passes through the injected FieldCipher before
it is written and after it is read. The tables never hold plaintext for
credentials.password, notes.content, cards.cv or cards.password.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = VaultStore("sqlite:///secretkeeper.db", FieldCipher(key))
    store.save_note(Note(user_name="alice", title="wifi", content="pa55"))
    store.get_notes(Note(user_name="alice"))
    store.close()
"""

import logging

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from core.crypto import FieldCipher
from core.db import make_engine
from core.errors import NoData
from vault.models import Card, Credentials, Note

logger = logging.getLogger("secretkeeper.vault")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_credentials = Table(
    "credentials",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_name", String(255), nullable=False, index=True),
    Column("login", String(255), nullable=False),
    Column("password", Text, nullable=False),  # FieldCipher token
    Column("metadata", Text),
)

_notes = Table(
    "notes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_name", String(255), nullable=False, index=True),
    Column("title", String(255), nullable=False),
    Column("content", Text, nullable=False),  # FieldCipher token
    Column("metadata", Text),
)

_cards = Table(
    "cards",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_name", String(255), nullable=False, index=True),
    Column("bank_name", String(255), nullable=False),
    Column("number", String(16), nullable=False),
    Column("cv", Text, nullable=False),  # FieldCipher token
    Column("password", Text, nullable=False),  # FieldCipher token
    Column("metadata", Text),
)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class VaultStore:
    """Repository for Credentials, Note and Card records."""

    def __init__(self, db_url: str, cipher: FieldCipher) -> None:
        self.engine: Engine = make_engine(db_url)
        metadata.create_all(self.engine)
        self.cipher = cipher

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def save_credentials(self, creds: Credentials) -> None:
        with self.engine.connect() as conn:
            conn.execute(
                _credentials.insert().values(
                    user_name=creds.user_name,
                    login=creds.login,
                    password=self.cipher.encrypt(creds.password),
                    metadata=creds.metadata,
                )
            )
            conn.commit()
        logger.info("Saved credentials for user %r", creds.user_name)

    def get_credentials(self, query: Credentials) -> list[Credentials]:
        """Return all credentials for query.user_name, optionally narrowed by login.

        Raises NoData if nothing matches.
        """
        stmt = _credentials.select().where(_credentials.c.user_name == query.user_name)
        if query.login is not None:
            stmt = stmt.where(_credentials.c.login == query.login)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(_credentials.c.id)).fetchall()
        if not rows:
            raise NoData(f"no credentials for user {query.user_name!r}")
        return [self._row_to_credentials(r) for r in rows]

    def update_credentials(self, creds: Credentials) -> bool:
        """Replace password and metadata of the record keyed by (user_name, login)."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _credentials.update()
                .where((_credentials.c.user_name == creds.user_name) & (_credentials.c.login == creds.login))
                .values(password=self.cipher.encrypt(creds.password), metadata=creds.metadata)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_credentials(self, query: Credentials) -> int:
        """Delete all credentials of a user, or only those with query.login."""
        stmt = _credentials.delete().where(_credentials.c.user_name == query.user_name)
        if query.login is not None:
            stmt = stmt.where(_credentials.c.login == query.login)
        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def save_note(self, note: Note) -> None:
        with self.engine.connect() as conn:
            conn.execute(
                _notes.insert().values(
                    user_name=note.user_name,
                    title=note.title,
                    content=self.cipher.encrypt(note.content or ""),
                    metadata=note.metadata,
                )
            )
            conn.commit()
        logger.info("Saved note for user %r", note.user_name)

    def get_notes(self, query: Note) -> list[Note]:
        """Return all notes for query.user_name, optionally narrowed by title.

        Raises NoData if nothing matches.
        """
        stmt = _notes.select().where(_notes.c.user_name == query.user_name)
        if query.title is not None:
            stmt = stmt.where(_notes.c.title == query.title)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(_notes.c.id)).fetchall()
        if not rows:
            raise NoData(f"no notes for user {query.user_name!r}")
        return [self._row_to_note(r) for r in rows]

    def update_note(self, note: Note) -> bool:
        """Replace content and metadata of the note keyed by (user_name, title)."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _notes.update()
                .where((_notes.c.user_name == note.user_name) & (_notes.c.title == note.title))
                .values(content=self.cipher.encrypt(note.content), metadata=note.metadata)
            )
            conn.commit()
        return result.rowcount > 0

    def delete_notes(self, query: Note) -> int:
        """Delete all notes of a user, or only those with query.title."""
        stmt = _notes.delete().where(_notes.c.user_name == query.user_name)
        if query.title is not None:
            stmt = stmt.where(_notes.c.title == query.title)
        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Cards (no update operation: a changed card is deleted and re-saved)
    # ------------------------------------------------------------------

    def save_card(self, card: Card) -> None:
        with self.engine.connect() as conn:
            conn.execute(
                _cards.insert().values(
                    user_name=card.user_name,
                    bank_name=card.bank_name,
                    number=card.number,
                    cv=self.cipher.encrypt(card.cv),
                    password=self.cipher.encrypt(card.password),
                    metadata=card.metadata,
                )
            )
            conn.commit()
        logger.info("Saved card for user %r", card.user_name)

    def get_cards(self, query: Card) -> list[Card]:
        """Return cards for query.user_name, optionally narrowed by bank_name and/or number.

        Raises NoData if nothing matches.
        """
        stmt = self._card_filter(_cards.select(), query)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(_cards.c.id)).fetchall()
        if not rows:
            raise NoData(f"no cards for user {query.user_name!r}")
        return [self._row_to_card(r) for r in rows]

    def delete_cards(self, query: Card) -> int:
        """Delete cards of a user, optionally narrowed by bank_name and/or number."""
        stmt = self._card_filter(_cards.delete(), query)
        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            conn.commit()
        return result.rowcount

    @staticmethod
    def _card_filter(stmt, query: Card):
        stmt = stmt.where(_cards.c.user_name == query.user_name)
        if query.bank_name is not None:
            stmt = stmt.where(_cards.c.bank_name == query.bank_name)
        if query.number is not None:
            stmt = stmt.where(_cards.c.number == query.number)
        return stmt

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Row mappers (Data Mapper pattern). Decryption happens here; a
    # DecodeError or CipherError propagates to the caller unchanged.
    # ------------------------------------------------------------------

    def _row_to_credentials(self, row) -> Credentials:
        return Credentials(
            user_name=row.user_name,
            login=row.login,
            password=self.cipher.decrypt(row.password),
            metadata=row.metadata,
        )

    def _row_to_note(self, row) -> Note:
        return Note(
            user_name=row.user_name,
            title=row.title,
            content=self.cipher.decrypt(row.content),
            metadata=row.metadata,
        )

    def _row_to_card(self, row) -> Card:
        return Card(
            user_name=row.user_name,
            bank_name=row.bank_name,
            number=row.number,
            cv=self.cipher.decrypt(row.cv),
            password=self.cipher.decrypt(row.password),
            metadata=row.metadata,
        )
