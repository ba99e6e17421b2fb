from __future__ import annotations

import logging
import math
import random
from typing import Callable, Sequence

from word_drill.config import DrillSettings
from word_drill.game.models import (
    CardStatus,
    Column,
    DisplayCard,
    ErrorReason,
    Feedback,
    Phase,
    Side,
    WordPair,
)
from word_drill.game.shuffle import shuffled
from word_drill.game.timers import AsyncioScheduler, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

READY_MESSAGE = "Select a word from each column."
ERROR_MESSAGES = {
    ErrorReason.EMPTY_DECK: "The deck is empty. Please upload a valid file or select another.",
    ErrorReason.EMPTY_PAGE_AT_START: "No playable pairs in this deck.",
    ErrorReason.RESTART_WITH_NO_DECK: "No deck loaded to restart. Please load a file first.",
}


class SetSession:
    """Matching game over one deck, played one fixed-size set at a time.

    Every public operation runs to completion before returning. The two
    display delays (page-clear pause, mismatch flash) go through the injected
    scheduler and are tagged with the generation they were scheduled in, so a
    callback that outlives a deck load or restart does nothing.
    """

    def __init__(
        self,
        *,
        settings: DrillSettings | None = None,
        scheduler: Scheduler | None = None,
        on_pronounce: Callable[[str], None] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or DrillSettings()
        if self.settings.set_size < 1:
            raise ValueError("set_size must be a positive integer")
        self.set_size = self.settings.set_size
        self.scheduler = scheduler or AsyncioScheduler()
        self.on_pronounce = on_pronounce
        self.rng = rng
        side = self.settings.pronunciation_side.strip().upper()
        self.pronunciation_side = None if side == "NONE" else Side(side)

        self.all_pairs: list[WordPair] = []
        self.deck_label: str | None = None
        self.set_index = 0
        self.left_cards: list[DisplayCard] = []
        self.right_cards: list[DisplayCard] = []
        self.selected_left_id: str | None = None
        self.selected_right_id: str | None = None
        self.score = 0
        self.attempts = 0
        self.phase = Phase.EMPTY
        self.error: ErrorReason | None = None
        self.feedback = Feedback("idle", "Choose a sample deck or upload your own spreadsheet.")

        self._generation = 0
        self._pending: list[TimerHandle] = []

    @property
    def total_sets(self) -> int:
        if not self.all_pairs:
            return 0
        return math.ceil(len(self.all_pairs) / self.set_size)

    @property
    def both_selected(self) -> bool:
        return self.selected_left_id is not None and self.selected_right_id is not None

    def begin_loading(self, label: str) -> None:
        self._invalidate()
        self.phase = Phase.LOADING
        self.error = None
        self.feedback = Feedback("loading", f"Loading {label}...")

    def load_failed(self, reason: str) -> None:
        self._invalidate()
        self.all_pairs = []
        self.deck_label = None
        self.set_index = 0
        self._clear_page()
        self._fail(ErrorReason.IMPORT_FAILED, reason)

    def load_deck(self, pairs: Sequence[WordPair], label: str | None = None) -> None:
        self._invalidate()
        self.phase = Phase.LOADING
        self.deck_label = label or "your file"
        self.set_index = 0
        if not pairs:
            self.all_pairs = []
            self._clear_page()
            self._fail(ErrorReason.EMPTY_DECK)
            return

        self.all_pairs = shuffled(pairs, self.rng)
        logger.info("Loaded deck %s with %d pairs in %d sets", self.deck_label, len(self.all_pairs), self.total_sets)
        self.load_page(0)
        if self.phase is Phase.PAGE_READY:
            self.feedback = Feedback(
                "loaded",
                f"Successfully loaded {len(self.all_pairs)} words from {self.deck_label}. {READY_MESSAGE}",
            )

    def load_page(self, index: int) -> None:
        if index < 0:
            raise ValueError("set index must not be negative")
        self._invalidate()
        start = index * self.set_size
        chunk = self.all_pairs[start : start + self.set_size]
        if not chunk:
            self._clear_page()
            if index > 0:
                self._complete()
            else:
                self._fail(ErrorReason.EMPTY_PAGE_AT_START)
            return

        count = len(chunk)
        left = [
            DisplayCard(
                id=f"left-{index}-{pos}-{pair.id}",
                pair_id=pair.id,
                text=pair.source_text,
                display_number=pos + 1,
                side=Side.SOURCE,
            )
            for pos, pair in enumerate(chunk)
        ]
        right = [
            DisplayCard(
                id=f"right-{index}-{pos}-{pair.id}",
                pair_id=pair.id,
                text=pair.target_text,
                display_number=count + pos + 1,
                side=Side.TARGET,
            )
            for pos, pair in enumerate(chunk)
        ]
        # two separate permutations keep the columns uncorrelated
        self.left_cards = shuffled(left, self.rng)
        self.right_cards = shuffled(right, self.rng)

        self.set_index = index
        self.selected_left_id = None
        self.selected_right_id = None
        self.score = 0
        self.attempts = 0
        self.error = None
        self.phase = Phase.PAGE_READY
        if index == 0:
            self.feedback = Feedback("page_ready", READY_MESSAGE)
        else:
            self.feedback = Feedback("page_ready", f"Set {index + 1} of {self.total_sets}. {READY_MESSAGE}")
        logger.info("Set %d/%d ready with %d pairs", index + 1, self.total_sets, count)

    def select_card(self, card_id: str, column: Column | str) -> None:
        if self.phase is not Phase.PAGE_READY:
            return
        try:
            column = Column(column)
        except ValueError:
            return

        cards = self.left_cards if column is Column.LEFT else self.right_cards
        card = next((c for c in cards if c.id == card_id), None)
        if card is None or card.status is CardStatus.MATCHED:
            return

        current = self.selected_left_id if column is Column.LEFT else self.selected_right_id
        if current == card.id:
            card.status = CardStatus.IDLE
            self._set_selected(column, None)
        else:
            for other in cards:
                if other.status is CardStatus.SELECTED:
                    other.status = CardStatus.IDLE
            card.status = CardStatus.SELECTED
            self._set_selected(column, card.id)
            self._pronounce(card)

        if self.both_selected:
            self.evaluate_pair()

    def evaluate_pair(self) -> None:
        if not self.both_selected:
            return
        left = self._find(self.left_cards, self.selected_left_id)
        right = self._find(self.right_cards, self.selected_right_id)
        self.selected_left_id = None
        self.selected_right_id = None
        if left is None or right is None:
            return

        self.attempts += 1
        if left.pair_id == right.pair_id:
            left.status = CardStatus.MATCHED
            right.status = CardStatus.MATCHED
            self.score += 1
            if self.score == len(self.left_cards):
                self.phase = Phase.PAGE_CLEARED
                self.feedback = Feedback("page_complete", f"Set {self.set_index + 1} complete! Well done!")
                self._schedule(self.settings.match_advance_delay, self._advance)
            else:
                self.feedback = Feedback("match", "Correct!")
            return

        left.status = CardStatus.REVEALED_INCORRECT
        right.status = CardStatus.REVEALED_INCORRECT
        self.feedback = Feedback("mismatch", "Incorrect. Try again!")
        revealed = {left.id, right.id}
        self._schedule(self.settings.mismatch_reveal_delay, lambda: self._revert(revealed))

    def restart(self) -> None:
        if not self.all_pairs:
            self._invalidate()
            self._clear_page()
            self._fail(ErrorReason.RESTART_WITH_NO_DECK)
            return

        self._invalidate()
        self.all_pairs = shuffled(self.all_pairs, self.rng)
        self.set_index = 0
        logger.info("Restarting deck %s", self.deck_label)
        self.load_page(0)
        if self.phase is Phase.PAGE_READY:
            self.feedback = Feedback("restart", f"Restarting with {self.deck_label}. {READY_MESSAGE}")

    def snapshot(self) -> dict:
        return {
            "phase": self.phase.value,
            "deck_label": self.deck_label,
            "set_index": self.set_index,
            "set_number": self.set_index + 1 if self.all_pairs else 0,
            "total_sets": self.total_sets,
            "set_size": self.set_size,
            "total_pairs": len(self.all_pairs),
            "cards_in_set": len(self.left_cards),
            "score": self.score,
            "attempts": self.attempts,
            "selected_left_id": self.selected_left_id,
            "selected_right_id": self.selected_right_id,
            "left_cards": [card.to_dict() for card in self.left_cards],
            "right_cards": [card.to_dict() for card in self.right_cards],
            "feedback": {"event": self.feedback.event, "message": self.feedback.message},
            "error": self.error.value if self.error else None,
        }

    def _advance(self) -> None:
        if self.phase is not Phase.PAGE_CLEARED:
            return
        self.load_page(self.set_index + 1)

    def _revert(self, card_ids: set[str]) -> None:
        for card in self.left_cards + self.right_cards:
            if card.id in card_ids and card.status is CardStatus.REVEALED_INCORRECT:
                card.status = CardStatus.IDLE
        if self.phase is Phase.PAGE_READY and self.feedback.event == "mismatch":
            self.feedback = Feedback("page_ready", READY_MESSAGE)

    def _complete(self) -> None:
        self.phase = Phase.COMPLETED
        self.error = None
        self.feedback = Feedback(
            "deck_complete",
            f"Congratulations! You matched all {len(self.all_pairs)} unique pairs from the deck!",
        )
        logger.info("Deck %s completed", self.deck_label)

    def _fail(self, reason: ErrorReason, message: str | None = None) -> None:
        self.phase = Phase.ERROR
        self.error = reason
        text = message or ERROR_MESSAGES.get(reason, reason.value)
        self.feedback = Feedback("error", text)
        logger.warning("Session error %s: %s", reason.value, text)

    def _clear_page(self) -> None:
        self.left_cards = []
        self.right_cards = []
        self.selected_left_id = None
        self.selected_right_id = None
        self.score = 0
        self.attempts = 0

    def _set_selected(self, column: Column, card_id: str | None) -> None:
        if column is Column.LEFT:
            self.selected_left_id = card_id
        else:
            self.selected_right_id = card_id

    def _pronounce(self, card: DisplayCard) -> None:
        if self.on_pronounce is None or card.side is not self.pronunciation_side:
            return
        try:
            self.on_pronounce(card.text)
        except Exception:
            logger.exception("Pronunciation request failed for %r", card.text)

    def _schedule(self, delay: float, action: Callable[[], None]) -> None:
        generation = self._generation

        def fire() -> None:
            if generation != self._generation:
                return
            action()

        self._pending.append(self.scheduler.call_later(delay, fire))

    def _invalidate(self) -> None:
        self._generation += 1
        for handle in self._pending:
            handle.cancel()
        self._pending = []

    @staticmethod
    def _find(cards: list[DisplayCard], card_id: str | None) -> DisplayCard | None:
        if card_id is None:
            return None
        return next((c for c in cards if c.id == card_id), None)
