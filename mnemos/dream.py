"""The dream cycle: memory consolidation while the agent is idle.

Each pass prunes expired observations, decays the importance of stale
ones, promotes recurring corrections into skills, raises rumination
candidates, and auto-resolves candidates whose revision already carries
a ``ruminated-from:<id>`` provenance tag. A pass can be mirrored into
memory as a ``dream`` observation so the agent can query past dreams.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from mnemos.promotion import Skill, SkillPromoter

RUMINATED_FROM_PREFIX = "ruminated-from:"
STATUS_PENDING = "pending"
TYPE_DREAM = "dream"
JOURNAL_TAGS = ("consolidation", "dream")
JOURNAL_IMPORTANCE = 3

DEFAULT_STALE_DAYS = 30
DEFAULT_DECAY_AMOUNT = 1
DEFAULT_DEDUP_WINDOW = 3


class DreamError(RuntimeError):
    """Raised when a consolidation step that must succeed fails."""


class CandidateNotFound(LookupError):
    """Raised by a rumination service when a candidate ID is unknown."""


class _Maintenance(Protocol):
    def prune(self, now: datetime) -> int: ...

    def decay_importance(self, stale_days: int, amount: int) -> int: ...


class _Memory(Protocol):
    def save(self, **fields: Any) -> Any: ...


class _Skills(Protocol):
    def list(self, agent_id: str) -> list[Skill]: ...


class _Rumination(Protocol):
    def persist_detected(self) -> tuple[int, int]: ...

    def get(self, candidate_id: str) -> Any: ...

    def resolve(self, candidate_id: str, resolved_by: str) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _rfc3339(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.replace(microsecond=0).isoformat()
    return text[: -len("+00:00")] + "Z" if text.endswith("+00:00") else text


def candidate_id_from_tag(tag: str) -> str:
    """Candidate ID from a ``ruminated-from:<id>`` tag, or "" for other tags."""
    if not tag.startswith(RUMINATED_FROM_PREFIX):
        return ""
    return tag[len(RUMINATED_FROM_PREFIX):]


@dataclass
class Journal:
    """Outcome of one consolidation pass."""

    started_at: datetime = field(default_factory=_utcnow)
    finished_at: datetime | None = None
    pruned: int = 0
    decayed: int = 0
    linked: int = 0
    promoted: int = 0
    ruminated_inserted: int = 0
    ruminated_updated: int = 0
    ruminated_resolved: int = 0
    notes: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Whether the pass did anything worth journaling."""
        return any(
            (
                self.pruned,
                self.decayed,
                self.linked,
                self.promoted,
                self.ruminated_inserted,
                self.ruminated_updated,
                self.ruminated_resolved,
            )
        )

    def summary(self) -> str:
        """Text persisted as the dream observation content."""
        finished = self.finished_at or self.started_at
        lines = [
            f"dream pass {_rfc3339(self.started_at)} → {_rfc3339(finished)}",
            f"- pruned: {self.pruned}",
            f"- decayed: {self.decayed}",
            f"- linked: {self.linked}",
            f"- promoted: {self.promoted}",
            f"- ruminated: {self.ruminated_inserted} new, {self.ruminated_updated} updated, "
            f"{self.ruminated_resolved} auto-resolved",
        ]
        lines.extend(f"- {note}" for note in self.notes)
        return "\n".join(lines).rstrip("\n")


class DreamService:
    """Runs consolidation passes. Every run is independent."""

    def __init__(
        self,
        memory: _Memory | None,
        store: _Maintenance,
        reader: Any = None,
        skills: _Skills | None = None,
        rumination: _Rumination | None = None,
        logger: logging.Logger | None = None,
        stale_days: int = 0,
        decay_amount: int = 0,
        dedup_window: int = 0,
    ) -> None:
        self._memory = memory
        self._store = store
        self._reader = reader
        self._skills = skills
        self._rumination = rumination
        self._log = logger or logging.getLogger(__name__)
        self._stale_days = stale_days or DEFAULT_STALE_DAYS
        self._decay_amount = decay_amount or DEFAULT_DECAY_AMOUNT
        self._dedup_window = dedup_window or DEFAULT_DEDUP_WINDOW
        self._promoter = SkillPromoter(reader, skills, self._log)

    def run(self, write_journal: bool = False) -> Journal:
        """Execute one consolidation pass and return its journal."""
        journal = Journal(started_at=_utcnow())

        try:
            journal.pruned = self._store.prune(_utcnow())
        except Exception as exc:
            raise DreamError(f"prune: {exc}") from exc

        try:
            journal.decayed = self._store.decay_importance(self._stale_days, self._decay_amount)
        except Exception as exc:
            raise DreamError(f"decay: {exc}") from exc

        try:
            journal.promoted = self._promoter.promote()
        except Exception as exc:
            self._log.warning("promote skills: %s", exc)

        if self._rumination is not None:
            try:
                inserted, updated = self._rumination.persist_detected()
            except Exception as exc:
                self._log.warning("rumination detection: %s", exc)
            else:
                journal.ruminated_inserted = inserted
                journal.ruminated_updated = updated
            try:
                journal.ruminated_resolved = self.auto_resolve_ruminations()
            except Exception as exc:
                self._log.warning("rumination auto-resolve: %s", exc)

        journal.finished_at = _utcnow()
        self._log.info(
            "dream pass pruned=%d decayed=%d linked=%d promoted=%d "
            "ruminated_new=%d ruminated_upd=%d ruminated_res=%d duration=%s",
            journal.pruned,
            journal.decayed,
            journal.linked,
            journal.promoted,
            journal.ruminated_inserted,
            journal.ruminated_updated,
            journal.ruminated_resolved,
            journal.finished_at - journal.started_at,
        )

        if write_journal and journal.changed and self._memory is not None:
            try:
                self._memory.save(
                    title="dream pass " + journal.started_at.strftime("%Y-%m-%d %H:%M"),
                    content=journal.summary(),
                    type=TYPE_DREAM,
                    tags=list(JOURNAL_TAGS),
                    importance=JOURNAL_IMPORTANCE,
                )
            except Exception as exc:
                self._log.warning("failed to write dream journal: %s", exc)

        return journal

    def auto_resolve_ruminations(self) -> int:
        """Close pending candidates named by ``ruminated-from:`` skill tags."""
        if self._rumination is None or self._skills is None:
            return 0
        try:
            skill_list = self._skills.list("")
        except Exception as exc:
            raise DreamError(f"list skills: {exc}") from exc

        closed = 0
        for skill in skill_list:
            for tag in skill.tags:
                candidate_id = candidate_id_from_tag(tag)
                if not candidate_id:
                    continue
                try:
                    candidate = self._rumination.get(candidate_id)
                except CandidateNotFound:
                    continue
                except Exception as exc:
                    self._log.debug("auto-resolve lookup %s: %s", candidate_id, exc)
                    continue
                if getattr(candidate, "status", None) != STATUS_PENDING:
                    continue
                try:
                    self._rumination.resolve(candidate_id, skill.id)
                except Exception as exc:
                    self._log.debug(
                        "auto-resolve skip %s (skill %s): %s", candidate_id, skill.id, exc
                    )
                    continue
                closed += 1
        return closed

    def watch(self, interval: float, stop: threading.Event) -> None:
        """Run a pass now, then every ``interval`` seconds until ``stop`` is set.

        A non-positive interval returns immediately without running.
        """
        if interval <= 0:
            return
        self._run_logged("initial dream pass failed")
        while not stop.wait(interval):
            self._run_logged("dream pass failed")

    def _run_logged(self, message: str) -> None:
        try:
            self.run(True)
        except Exception as exc:
            self._log.warning("%s: %s", message, exc)