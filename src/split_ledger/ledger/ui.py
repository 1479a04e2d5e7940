"""Interactive UI components for entering shared expenses."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from ..exceptions import InvalidAmountError
from ..models import LedgerConfig
from ..money import MoneyAmount

logger = logging.getLogger(__name__)


class PersonCompleter(Completer):
    """Fuzzy search completer for people already in the ledger."""

    def __init__(self, people: list[str]):
        """Initialize the completer with known person ids."""
        self.people = sorted(set(people))

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for person_id in self.people:
            if not query or fuzzy_match(query, person_id.lower()):
                yield Completion(
                    text=person_id,
                    start_position=-len(document.text),
                    display=person_id,
                )


def fuzzy_match(query: str, text: str) -> bool:
    """
    Fuzzy match: all characters in query must appear in order in text.

    Example:
        query="crl" matches "carol"
        query="bb" matches "bob"
    """
    query_idx = 0
    for char in text:
        if query_idx < len(query) and char == query[query_idx]:
            query_idx += 1
    return query_idx == len(query)


def prompt_person(people: list[str], label: str, default: str = "") -> str | None:
    """
    Ask for a single person id, completing from known people.

    New names are accepted as-is. Returns None on empty input or Ctrl+C.
    """
    session: PromptSession[str] = PromptSession(completer=PersonCompleter(people))
    try:
        result = session.prompt(
            f"{label}: ", default=default, complete_while_typing=True
        ).strip()
    except (KeyboardInterrupt, EOFError):
        print("\n⏭️  Cancelled")
        return None
    return result or None


def prompt_participants(people: list[str], payer_id: str) -> list[str] | None:
    """
    Ask for participants one at a time until an empty line.

    The payer is offered first (press Enter on the pre-filled name to include
    them, or clear it to leave them out). Returns None if nobody was entered.
    """
    print("   Add participants one per line, empty line to finish\n")

    participants: list[str] = []
    known = sorted(set(people) | {payer_id})
    default = payer_id

    while True:
        person_id = prompt_person(known, "Participant", default=default)
        default = ""
        if person_id is None:
            break
        if person_id in participants:
            print(f"❌ {person_id} is already in this split")
            continue
        participants.append(person_id)
        logger.debug(f"Added participant {person_id}")

    return participants or None


def prompt_amount(label: str = "Total") -> MoneyAmount | None:
    """Ask for an amount until it parses as an exact decimal."""
    session: PromptSession[str] = PromptSession()
    while True:
        try:
            raw = session.prompt(f"{label}: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n⏭️  Cancelled")
            return None

        if not raw:
            return None
        try:
            return MoneyAmount.parse(raw)
        except InvalidAmountError:
            print(f"❌ {raw!r} is not an amount. Try something like 42.50")


def confirm_split(
    shares: dict[str, MoneyAmount], config: LedgerConfig | None = None
) -> bool:
    """
    Simple yes/no confirmation for a computed split.

    Returns:
        True if confirmed, False otherwise
    """
    print("\n📝 Split:")
    for person_id, share in shares.items():
        print(f"   {person_id}: {share.formatted(config)}")

    response = input("   Save this expense? [Y/n] ").strip().lower()

    return response in ("", "y", "yes")
