"""
api/routes/v1/secrets.py -- Credentials, notes and cards for authorized users.

Routes (all POST with a JSON body carrying user_name):
  /save/credentials   /get/credentials   /update/credentials   /delete/credentials
  /save/note          /get/note          /update/note          /delete/note
  /save/card          /get/card                                /delete/card

Every route sits behind require_session (the Auth Gate). The gate reads
user_name from the body, so the body models here all include it.

Lookups that match nothing raise NoData, which api/main.py answers with 204.
Updates of a record that does not exist are reported the same way.
Cards have no update route.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import (
    CardBody,
    CardQuery,
    CardRecord,
    CredentialsBody,
    CredentialsQuery,
    CredentialsRecord,
    MessageResponse,
    NoteBody,
    NoteQuery,
    NoteRecord,
    NoteUpdateBody,
)
from auth.dependencies import require_session
from core.errors import NoData
from vault.interface import VaultStorage
from vault.models import Card, Credentials, Note

# Router-level dependency applies the Auth Gate to every route registered on
# this router, so individual handlers don't each repeat Depends(require_session).
router = APIRouter(dependencies=[Depends(require_session)])


def _vault(request: Request) -> VaultStorage:
    return request.app.state.vault


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@router.post("/save/credentials", response_model=MessageResponse)
def save_credentials(request: Request, body: CredentialsBody) -> MessageResponse:
    _vault(request).save_credentials(body.to_domain())
    return MessageResponse(message=f"saved credentials for user {body.user_name!r}")


@router.post("/get/credentials", response_model=list[CredentialsRecord])
def get_credentials(request: Request, body: CredentialsQuery) -> list[CredentialsRecord]:
    """Return the user's credentials, all of them or only those for body.login."""
    creds = _vault(request).get_credentials(Credentials(user_name=body.user_name, login=body.login))
    return [CredentialsRecord.from_domain(c) for c in creds]


@router.post("/update/credentials", response_model=MessageResponse)
def update_credentials(request: Request, body: CredentialsBody) -> MessageResponse:
    """Replace the password (and metadata) stored for body.login."""
    if not _vault(request).update_credentials(body.to_domain()):
        raise NoData(f"no credentials with login {body.login!r} for user {body.user_name!r}")
    return MessageResponse(message=f"updated credentials for user {body.user_name!r}")


@router.post("/delete/credentials", response_model=MessageResponse)
def delete_credentials(request: Request, body: CredentialsQuery) -> MessageResponse:
    _vault(request).delete_credentials(Credentials(user_name=body.user_name, login=body.login))
    if body.login is not None:
        return MessageResponse(
            message=f"credentials for user {body.user_name!r} with login {body.login!r} were successfully deleted"
        )
    return MessageResponse(message=f"credentials for user {body.user_name!r} were successfully deleted")


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


@router.post("/save/note", response_model=MessageResponse)
def save_note(request: Request, body: NoteBody) -> MessageResponse:
    _vault(request).save_note(body.to_domain())
    return MessageResponse(message=f"saved note for user {body.user_name!r}")


@router.post("/get/note", response_model=list[NoteRecord])
def get_notes(request: Request, body: NoteQuery) -> list[NoteRecord]:
    notes = _vault(request).get_notes(Note(user_name=body.user_name, title=body.title))
    return [NoteRecord.from_domain(n) for n in notes]


@router.post("/update/note", response_model=MessageResponse)
def update_note(request: Request, body: NoteUpdateBody) -> MessageResponse:
    if not _vault(request).update_note(body.to_domain()):
        raise NoData(f"no note titled {body.title!r} for user {body.user_name!r}")
    return MessageResponse(message=f"updated note for user {body.user_name!r}")


@router.post("/delete/note", response_model=MessageResponse)
def delete_notes(request: Request, body: NoteQuery) -> MessageResponse:
    _vault(request).delete_notes(Note(user_name=body.user_name, title=body.title))
    if body.title is not None:
        return MessageResponse(
            message=f"notes for user {body.user_name!r} with title {body.title!r} were successfully deleted"
        )
    return MessageResponse(message=f"notes for user {body.user_name!r} were successfully deleted")


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


@router.post("/save/card", response_model=MessageResponse)
def save_card(request: Request, body: CardBody) -> MessageResponse:
    _vault(request).save_card(body.to_domain())
    return MessageResponse(message=f"saved card for user {body.user_name!r}")


@router.post("/get/card", response_model=list[CardRecord])
def get_cards(request: Request, body: CardQuery) -> list[CardRecord]:
    """Return the user's cards, optionally narrowed by bank and/or number."""
    cards = _vault(request).get_cards(Card(user_name=body.user_name, bank_name=body.bank_name, number=body.number))
    return [CardRecord.from_domain(c) for c in cards]


@router.post("/delete/card", response_model=MessageResponse)
def delete_cards(request: Request, body: CardQuery) -> MessageResponse:
    _vault(request).delete_cards(Card(user_name=body.user_name, bank_name=body.bank_name, number=body.number))
    if body.bank_name is not None:
        message = f"cards of {body.bank_name!r} bank for user {body.user_name!r} were successfully deleted"
    elif body.number is not None:
        message = f"cards with number {body.number!r} for user {body.user_name!r} were successfully deleted"
    else:
        message = f"cards for user {body.user_name!r} were successfully deleted"
    return MessageResponse(message=message)
