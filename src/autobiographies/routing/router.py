"""Submission router: the per-tick pairing state machine.

Each tick lists the inbox once, keeps the messages that are genuinely new
submissions from registered users, stores their attachments, assigns a
reviewer to every new autobiography, forwards attachments and finally flushes
the pairing table if anything changed.

Every candidate is processed inside its own failure boundary: a failed
download, a missing reviewer or a failed send only stops that candidate, which
is then reconsidered on the next tick because no pairing records it as sent.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Set, Tuple

from autobiographies.configuration.settings import RoutingSettings
from autobiographies.errors import (
    AttachmentDownloadError,
    MailboxFetchError,
    MailSendError,
)
from autobiographies.mailing.mailbox import Mailbox
from autobiographies.mailing.models import Message
from autobiographies.pairing.models import AutobiographyPairing, active_reviewers
from autobiographies.pairing.store import PairingStore
from autobiographies.users.roster import Roster

from .models import ItemOutcome, SkipReason, SubmissionKind, TickResult

logger = logging.getLogger(__name__)

Downloaded = Tuple[Message, Path]


class SubmissionRouter:
    """Routes autobiographies to reviewers and feedback back to authors."""

    def __init__(
        self,
        *,
        roster: Roster,
        mailbox: Mailbox,
        store: PairingStore,
        routing: RoutingSettings,
        autobiographies_dir: Path,
        feedback_dir: Path,
        pairings: Optional[List[AutobiographyPairing]] = None,
    ) -> None:
        """Initialize router.

        Args:
            roster: Registered users; scan order decides reviewer assignment
            mailbox: Mail provider collaborator
            store: Durable pairing table
            routing: Subject tags and outgoing templates
            autobiographies_dir: Where autobiography attachments are stored
            feedback_dir: Where feedback attachments are stored
            pairings: Already loaded pairings; loaded from ``store`` if omitted
        """
        self._roster = roster
        self._mailbox = mailbox
        self._store = store
        self._routing = routing
        self._autobiographies_dir = Path(autobiographies_dir)
        self._feedback_dir = Path(feedback_dir)
        self._pairings: Optional[List[AutobiographyPairing]] = (
            list(pairings) if pairings is not None else None
        )
        self._dirty = False

    @property
    def pairings(self) -> List[AutobiographyPairing]:
        return list(self._pairings or [])

    def load(self) -> List[AutobiographyPairing]:
        """Load the pairing table; corruption propagates to the caller."""

        self._pairings = self._store.load()
        self._dirty = False
        return self.pairings

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self) -> TickResult:
        """Run one full fetch, filter, assign, send and persist cycle."""

        if self._pairings is None:
            self.load()

        result = TickResult()
        try:
            messages = self._mailbox.list_candidates(attachments_only=True)
        except MailboxFetchError as exc:
            logger.error(
                f"Could not list e-mail messages, skipping tick: {exc}",
                exc_info=exc,
            )
            result.error = str(exc)
            return result

        result.candidates = len(messages)
        if not messages:
            logger.info("No e-mail messages to process")
            return result

        # A subject carrying both tags is feedback
        autobiographies = self._select_new(
            messages,
            self._routing.autobiography_tag,
            self._has_sent_autobiography,
            exclude_tag=self._routing.feedback_tag,
        )
        feedback = self._select_new(
            messages, self._routing.feedback_tag, self._has_sent_feedback
        )
        logger.info(
            f"Found {len(autobiographies)} new autobiographies and "
            f"{len(feedback)} new feedback messages",
            extra={
                "candidate_count": len(messages),
                "autobiography_count": len(autobiographies),
                "feedback_count": len(feedback),
            },
        )

        stored_autobiographies = self._download_all(
            autobiographies,
            SubmissionKind.AUTOBIOGRAPHY,
            self._autobiographies_dir,
            result,
        )
        stored_feedback = self._download_all(
            feedback, SubmissionKind.FEEDBACK, self._feedback_dir, result
        )

        assignments = self._assign_reviewers(stored_autobiographies, result)
        self._send_autobiographies(assignments, result)
        self._send_feedback(stored_feedback, result)

        if self._dirty:
            self._flush(result)

        logger.info(
            f"Tick finished: {len(result.routed)} routed, "
            f"{len(result.skipped)} skipped",
            extra={
                "routed_count": len(result.routed),
                "skipped_count": len(result.skipped),
                "flushed": result.flushed,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def _select_new(
        self,
        messages: Sequence[Message],
        tag: str,
        already_done: Callable[[str], bool],
        exclude_tag: Optional[str] = None,
    ) -> List[Message]:
        selected: List[Message] = []
        for message in messages:
            if not message.subject_has_tag(tag):
                continue
            if exclude_tag and message.subject_has_tag(exclude_tag):
                continue
            if not self._roster.contains(message.sender):
                logger.debug(
                    f"Ignoring {message}: sender is not registered",
                    extra={"message_id": message.provider_message_id},
                )
                continue
            if already_done(message.sender):
                continue
            selected.append(message)
        return selected

    def _has_sent_autobiography(self, sender: str) -> bool:
        return any(
            p.author == sender and p.autobiography_sent for p in self._pairings or []
        )

    def _has_sent_feedback(self, sender: str) -> bool:
        return any(
            p.reviewer == sender and p.feedback_sent for p in self._pairings or []
        )

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def _download_all(
        self,
        messages: Sequence[Message],
        kind: SubmissionKind,
        directory: Path,
        result: TickResult,
    ) -> List[Downloaded]:
        if not messages:
            return []

        directory.mkdir(parents=True, exist_ok=True)
        stored: List[Downloaded] = []
        senders: Set[str] = set()
        for message in messages:
            # First stored attachment per sender wins; a failed one falls through
            if message.sender in senders:
                continue
            try:
                path = self._mailbox.download_attachment(message, directory)
            except AttachmentDownloadError as exc:
                logger.warning(
                    f"Could not save attachment of {message}: {exc}",
                    extra={"message_id": message.provider_message_id},
                )
                result.outcomes.append(
                    _skip(kind, message, SkipReason.DOWNLOAD_FAILED, str(exc))
                )
                continue
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    f"Unexpected error saving attachment of {message}",
                    exc_info=exc,
                    extra={"message_id": message.provider_message_id},
                )
                result.outcomes.append(
                    _skip(kind, message, SkipReason.UNEXPECTED_ERROR, str(exc))
                )
                continue
            senders.add(message.sender)
            stored.append((message, Path(path)))
        return stored

    # ------------------------------------------------------------------
    # Autobiographies
    # ------------------------------------------------------------------

    def _assign_reviewers(
        self, stored: Sequence[Downloaded], result: TickResult
    ) -> List[Tuple[Message, Path, str]]:
        unavailable = active_reviewers(self._pairings or [])
        assignments: List[Tuple[Message, Path, str]] = []
        for message, path in stored:
            reviewer = self._pick_reviewer(message.sender, unavailable)
            if reviewer is None:
                logger.error(
                    f"Could not find a reviewer for the autobiography of {message.sender}",
                    extra={"pairing_author": message.sender},
                )
                result.outcomes.append(
                    _skip(SubmissionKind.AUTOBIOGRAPHY, message, SkipReason.NO_REVIEWER)
                )
                continue
            unavailable.add(reviewer)
            assignments.append((message, path, reviewer))
        return assignments

    def _pick_reviewer(self, author: str, unavailable: Set[str]) -> Optional[str]:
        for candidate in self._roster.all():
            if candidate != author and candidate not in unavailable:
                return candidate
        return None

    def _send_autobiographies(
        self,
        assignments: Sequence[Tuple[Message, Path, str]],
        result: TickResult,
    ) -> None:
        for message, path, reviewer in assignments:
            try:
                pairing = AutobiographyPairing.for_assignment(
                    author=message.sender, reviewer=reviewer
                )
                self._mailbox.send(
                    reviewer,
                    path,
                    self._routing.autobiography_subject,
                    self._routing.autobiography_body,
                )
                pairing.mark_autobiography_sent(autobiography_file=path.name)
            except MailSendError as exc:
                logger.error(
                    f"Could not send the autobiography of {message.sender} "
                    f"to {reviewer}: {exc}",
                    extra={"pairing_author": message.sender, "pairing_reviewer": reviewer},
                )
                result.outcomes.append(
                    _skip(
                        SubmissionKind.AUTOBIOGRAPHY,
                        message,
                        SkipReason.SEND_FAILED,
                        str(exc),
                    )
                )
                continue
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    f"Unexpected error routing the autobiography of {message.sender}",
                    exc_info=exc,
                    extra={"pairing_author": message.sender, "pairing_reviewer": reviewer},
                )
                result.outcomes.append(
                    _skip(
                        SubmissionKind.AUTOBIOGRAPHY,
                        message,
                        SkipReason.UNEXPECTED_ERROR,
                        str(exc),
                    )
                )
                continue

            self._pairings.append(pairing)
            self._dirty = True
            logger.info(
                f"Sent the autobiography of {message.sender} to {reviewer}",
                extra={"pairing_author": message.sender, "pairing_reviewer": reviewer},
            )
            result.outcomes.append(
                ItemOutcome.routed_to(
                    SubmissionKind.AUTOBIOGRAPHY,
                    message.sender,
                    message.provider_message_id,
                    reviewer,
                )
            )

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def _open_pairing_for(self, reviewer: str) -> Optional[AutobiographyPairing]:
        for pairing in self._pairings or []:
            if pairing.reviewer == reviewer and pairing.is_active:
                return pairing
        return None

    def _send_feedback(self, stored: Sequence[Downloaded], result: TickResult) -> None:
        for message, path in stored:
            pairing = self._open_pairing_for(message.sender)
            if pairing is None:
                logger.error(
                    f"Could not find the autobiography {message.sender} gave feedback on",
                    extra={"pairing_reviewer": message.sender},
                )
                result.outcomes.append(
                    _skip(SubmissionKind.FEEDBACK, message, SkipReason.NO_PAIRING)
                )
                continue

            try:
                self._mailbox.send(
                    pairing.author,
                    path,
                    self._routing.feedback_subject,
                    self._routing.feedback_body,
                )
                pairing.mark_feedback_sent(feedback_file=path.name)
            except MailSendError as exc:
                logger.error(
                    f"Could not send the feedback of {message.sender} "
                    f"to {pairing.author}: {exc}",
                    extra={
                        "pairing_author": pairing.author,
                        "pairing_reviewer": message.sender,
                    },
                )
                result.outcomes.append(
                    _skip(SubmissionKind.FEEDBACK, message, SkipReason.SEND_FAILED, str(exc))
                )
                continue
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    f"Unexpected error routing the feedback of {message.sender}",
                    exc_info=exc,
                    extra={
                        "pairing_author": pairing.author,
                        "pairing_reviewer": message.sender,
                    },
                )
                result.outcomes.append(
                    _skip(
                        SubmissionKind.FEEDBACK,
                        message,
                        SkipReason.UNEXPECTED_ERROR,
                        str(exc),
                    )
                )
                continue

            self._dirty = True
            logger.info(
                f"Sent the feedback of {message.sender} to {pairing.author}",
                extra={
                    "pairing_author": pairing.author,
                    "pairing_reviewer": message.sender,
                },
            )
            result.outcomes.append(
                ItemOutcome.routed_to(
                    SubmissionKind.FEEDBACK,
                    message.sender,
                    message.provider_message_id,
                    pairing.author,
                )
            )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _flush(self, result: TickResult) -> None:
        try:
            result.flushed = self._store.flush(self._pairings or [])
        except OSError as exc:
            # Still dirty: retried after the next tick
            logger.error(
                f"Could not save pairings: {exc}",
                exc_info=exc,
                extra={"pairings_path": str(self._store.path)},
            )
            result.flush_error = str(exc)
            return
        self._dirty = False


def _skip(
    kind: SubmissionKind,
    message: Message,
    reason: SkipReason,
    detail: Optional[str] = None,
) -> ItemOutcome:
    return ItemOutcome.skipped(
        kind, message.sender, message.provider_message_id, reason, detail
    )


__all__ = ["SubmissionRouter"]
