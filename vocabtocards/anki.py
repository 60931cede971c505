"""
Client for AnkiConnect, the http api of the Anki add-on of the same name

Every call is a POST of {"action", "version", "params"}, answered with
{"result", "error"}. See https://foosoft.net/projects/anki-connect/
"""
from dataclasses import dataclass, field
import logging
from typing import Any, Dict, List, Optional

import requests

from vocabtocards.annotations import DeckId, DeckName, NoteId


# ======
# Logger
# ======
logger = logging.getLogger(__name__)


# =========
# Constants
# =========
DEFAULT_ANKI_CONNECT_URL = "http://localhost:8765"
ANKI_CONNECT_VERSION = 6
DEFAULT_TIMEOUT = 10.0
DUPLICATE_ERROR_MARKER = "duplicate"
BATCH_DUPLICATE_ERROR = (
    "cannot create note because it is a duplicate of an earlier note in the"
    " batch"
)


# ==========
# Exceptions
# ==========
class AnkiConnectError(Exception):
    """AnkiConnect answered with an error, or with something unexpected"""

    pass


class AnkiConnectionError(AnkiConnectError):
    """AnkiConnect cannot be reached"""

    pass


# ==================
# Requests/responses
# ==================
@dataclass
class AnkiRequest:
    action: str
    params: Dict[str, Any] = field(default_factory=dict)
    version: int = ANKI_CONNECT_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "version": self.version,
            "params": self.params,
        }


@dataclass
class AnkiResponse:
    result: Any = None
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Any) -> "AnkiResponse":
        """Parse the json body of an AnkiConnect answer"""
        if not isinstance(payload, dict) or set(payload.keys()) != {
            "result",
            "error",
        }:
            raise AnkiConnectError(
                f"Unexpected AnkiConnect response: {payload!r}"
            )
        return cls(result=payload["result"], error=payload["error"])


# =====
# Notes
# =====
@dataclass
class DuplicateScopeOptions:
    deck_name: DeckName
    check_children: bool = False
    check_all_models: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deckName": self.deck_name,
            "checkChildren": self.check_children,
            "checkAllModels": self.check_all_models,
        }


@dataclass
class NoteOptions:
    """How Anki should treat duplicates

    `duplicate_scope` is either "deck" (look for duplicates in the deck of
    `duplicate_scope_options`) or "collection".
    """

    allow_duplicate: bool = False
    duplicate_scope: str = "deck"
    duplicate_scope_options: Optional[DuplicateScopeOptions] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "allowDuplicate": self.allow_duplicate,
            "duplicateScope": self.duplicate_scope,
        }
        if self.duplicate_scope_options is not None:
            out["duplicateScopeOptions"] = self.duplicate_scope_options.to_dict()
        return out


@dataclass
class Note:
    """Anki note

    Attributes
        deck_name (DeckName)
        model_name (str): note type, e.g. "Basic"
        fields (Dict[str, str]): field name in the note type -> content
        tags (List[str])
        options (Optional[NoteOptions])
    """

    deck_name: DeckName
    model_name: str
    fields: Dict[str, str]
    tags: List[str] = field(default_factory=list)
    options: Optional[NoteOptions] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "deckName": self.deck_name,
            "modelName": self.model_name,
            "fields": dict(self.fields),
        }
        if self.tags:
            out["tags"] = list(self.tags)
        if self.options is not None:
            out["options"] = self.options.to_dict()
        return out


@dataclass(frozen=True)
class AddNoteOutcome:
    """Fate of one note in a bulk addition. Exactly one of the 2 is set."""

    note_id: Optional[NoteId] = None
    error: Optional[str] = None

    @property
    def is_added(self) -> bool:
        return self.note_id is not None

    @property
    def is_duplicate(self) -> bool:
        return (
            self.error is not None
            and DUPLICATE_ERROR_MARKER in self.error.lower()
        )


# ======
# Client
# ======
class AnkiConnectClient:
    """Thin client over AnkiConnect

    Arguments
        url (str): where AnkiConnect listens
        timeout (float): seconds before giving up on a request
        session (Optional[requests.Session]): defaults to a new session
    """

    def __init__(
        self,
        url: str = DEFAULT_ANKI_CONNECT_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def invoke(self, action: str, **params) -> Any:
        """Send one action and return its result

        Raises
            AnkiConnectionError: AnkiConnect cannot be reached
            AnkiConnectError: http error, malformed answer, or error reported
                by AnkiConnect
        """
        request = AnkiRequest(action=action, params=params)
        logger.debug(f"-- AnkiConnect call: {action}")
        try:
            http_response = self.session.post(
                self.url, json=request.to_dict(), timeout=self.timeout
            )
            http_response.raise_for_status()
        except (
            requests.exceptions.ConnectionError,
            requests.exceptions.Timeout,
        ) as e:
            raise AnkiConnectionError(
                f"Cannot reach AnkiConnect at {self.url}: {e}"
            ) from e
        except requests.exceptions.HTTPError as e:
            raise AnkiConnectError(f"{action} failed: {e}") from e
        try:
            payload = http_response.json()
        except ValueError as e:
            raise AnkiConnectError(
                f"{action} answered with a non-json body"
            ) from e
        response = AnkiResponse.from_dict(payload)
        if response.error is not None:
            raise AnkiConnectError(f"{action} failed: {response.error}")
        return response.result

    def check_connection(self) -> int:
        """Return the version of AnkiConnect"""
        return self.invoke("version")

    def request_permission(self) -> Dict[str, Any]:
        return self.invoke("requestPermission")

    def deck_names(self) -> List[DeckName]:
        return self.invoke("deckNames")

    def create_deck(self, deck_name: DeckName) -> DeckId:
        """Create a deck. Returns the id of the existing deck if any."""
        return self.invoke("createDeck", deck=deck_name)

    def add_note(self, note: Note) -> NoteId:
        return self.invoke("addNote", note=note.to_dict())

    def can_add_notes(self, notes: List[Note]) -> List[AddNoteOutcome]:
        """Check each note. Addable notes get an outcome without error."""
        if len(notes) == 0:
            return []
        checks = self.invoke(
            "canAddNotesWithErrorDetail",
            notes=[note.to_dict() for note in notes],
        )
        if len(checks) != len(notes):
            raise AnkiConnectError(
                f"Sent {len(notes)} notes to check, got {len(checks)} answers"
            )
        return [
            AddNoteOutcome()
            if check.get("canAdd")
            else AddNoteOutcome(error=check.get("error") or "Cannot add note")
            for check in checks
        ]

    @staticmethod
    def _duplicate_key(note: Note) -> Optional[tuple]:
        """What Anki compares to detect duplicates: the first field, per note
        type, within the deck for a "deck" scope. None if duplicates are
        allowed."""
        options = note.options if note.options is not None else NoteOptions()
        if options.allow_duplicate:
            return None
        first_field = next(iter(note.fields.values()), "").strip()
        scope_deck = note.deck_name if options.duplicate_scope == "deck" else None
        return (note.model_name, scope_deck, first_field)

    def _add_notes_one_by_one(self, notes: List[Note]) -> List[AddNoteOutcome]:
        outcomes = []
        for note in notes:
            try:
                outcomes.append(AddNoteOutcome(note_id=self.add_note(note)))
            except AnkiConnectionError:
                raise
            except AnkiConnectError as e:
                outcomes.append(AddNoteOutcome(error=str(e)))
        return outcomes

    def add_notes(self, notes: List[Note]) -> List[AddNoteOutcome]:
        """Add notes in bulk, one outcome per note, in order

        Notes that cannot be added (duplicates in the collection or earlier in
        the batch, unknown deck or model, ...) are not sent, and keep the
        reason in their outcome. If AnkiConnect still refuses the bulk call,
        notes are sent one at a time.
        """
        checks = self.can_add_notes(notes)
        seen_keys = set()
        for i, (note, check) in enumerate(zip(notes, checks)):
            if check.error is not None:
                continue
            key = self._duplicate_key(note)
            if key is None:
                continue
            if key in seen_keys:
                checks[i] = AddNoteOutcome(error=BATCH_DUPLICATE_ERROR)
            else:
                seen_keys.add(key)
        addable = [
            note for note, check in zip(notes, checks) if check.error is None
        ]
        if not addable:
            return checks
        try:
            note_ids = self.invoke(
                "addNotes", notes=[note.to_dict() for note in addable]
            )
        except AnkiConnectionError:
            raise
        except AnkiConnectError as e:
            logger.warning(f"-- Bulk addition refused ({e}). Adding one by one.")
            added = iter(self._add_notes_one_by_one(addable))
        else:
            if len(note_ids) != len(addable):
                raise AnkiConnectError(
                    f"Sent {len(addable)} notes, got {len(note_ids)} ids"
                )
            added = iter(
                AddNoteOutcome(note_id=note_id)
                if note_id is not None
                else AddNoteOutcome(error="Note could not be added")
                for note_id in note_ids
            )
        return [
            check if check.error is not None else next(added)
            for check in checks
        ]
