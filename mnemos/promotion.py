"""Promotion of recurring corrections into reusable skills.

Correction observations are clustered by (agent, project, label). Once a
cluster holds at least :data:`MIN_CORRECTIONS_PER_GROUP` corrections, a
skill is synthesised from it. Each cluster carries a stable hash written
to the skill as a ``promoted-origin:<hash>`` tag, so later passes update
the same skill instead of creating duplicates.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol

TYPE_CORRECTION = "correction"
MIN_CORRECTIONS_PER_GROUP = 3
TAG_PROMOTED = "auto-promoted"
ORIGIN_PREFIX = "promoted-origin:"
CORRECTION_FETCH_LIMIT = 10000
DEFAULT_AGENT = "default"


@dataclass
class Observation:
    """A stored memory observation, reduced to the fields promotion reads."""

    id: str = ""
    title: str = ""
    content: str = ""
    type: str = ""
    tags: list[str] = field(default_factory=list)
    agent_id: str = ""
    project: str = ""
    session_id: str = ""
    structured: str = ""


@dataclass
class Skill:
    """A stored, versioned skill."""

    id: str = ""
    agent_id: str = ""
    name: str = ""
    description: str = ""
    procedure: str = ""
    pitfalls: str = ""
    tags: list[str] = field(default_factory=list)
    source_sessions: list[str] = field(default_factory=list)
    version: int = 1
    use_count: int = 0
    effectiveness: float = 0.0


@dataclass
class SkillDraft:
    """The input for saving or versioning a skill."""

    name: str
    description: str = ""
    procedure: str = ""
    pitfalls: str = ""
    tags: list[str] = field(default_factory=list)
    source_sessions: list[str] = field(default_factory=list)
    agent_id: str = ""


@dataclass
class CorrectionData:
    """The structured payload a correction observation carries."""

    tried: str = ""
    wrong_because: str = ""
    fix: str = ""
    trigger_context: str = ""

    def to_json(self) -> str:
        return json.dumps(
            {
                "tried": self.tried,
                "wrong_because": self.wrong_because,
                "fix": self.fix,
                "trigger_context": self.trigger_context,
            }
        )


@dataclass
class CorrectionGroup:
    """Corrections sharing one (agent, project, label) key."""

    agent_id: str
    project: str
    label: str
    corrections: list[Observation] = field(default_factory=list)
    origin_hash: str = ""

    def __post_init__(self) -> None:
        if not self.origin_hash:
            self.origin_hash = group_hash(self.agent_id, self.project, self.label)


class _ObservationReader(Protocol):
    def list_by_project(
        self, agent_id: str, project: str, obs_type: str, limit: int
    ) -> list[Observation]: ...


class _SkillStore(Protocol):
    def list(self, agent_id: str) -> list[Skill]: ...

    def save(self, draft: SkillDraft) -> Skill: ...


def correction_label(observation: Observation) -> str:
    """Clustering label: first non-structural tag, else first three title words."""
    for raw in observation.tags:
        tag = raw.strip()
        if not tag or tag == TAG_PROMOTED or tag.startswith(ORIGIN_PREFIX):
            continue
        return tag.lower()
    words = observation.title.strip().lower().split()
    return " ".join(words[:3])


def group_hash(agent_id: str, project: str, label: str) -> str:
    """Stable 12-character hex key for a correction group."""
    digest = hashlib.sha256(f"{agent_id}|{project}|{label}".encode("utf-8")).hexdigest()
    return digest[:12]


def _default_agent(agent_id: str) -> str:
    return agent_id or DEFAULT_AGENT


def group_corrections(observations: Iterable[Observation]) -> list[CorrectionGroup]:
    """Cluster corrections, ordered by project then label."""
    groups: dict[tuple[str, str, str], CorrectionGroup] = {}
    for obs in observations:
        label = correction_label(obs)
        if not label:
            continue
        key = (_default_agent(obs.agent_id), obs.project, label)
        group = groups.get(key)
        if group is None:
            group = groups[key] = CorrectionGroup(agent_id=key[0], project=key[1], label=key[2])
        group.corrections.append(obs)
    return sorted(groups.values(), key=lambda g: (g.project, g.label))


def decode_correction(observation: Observation) -> CorrectionData:
    """Read the structured payload; missing or malformed JSON yields empty fields."""
    if not observation.structured:
        return CorrectionData()
    try:
        raw = json.loads(observation.structured)
    except ValueError:
        return CorrectionData()
    if not isinstance(raw, dict):
        return CorrectionData()

    def text(name: str) -> str:
        value = raw.get(name)
        return value if isinstance(value, str) else ""

    return CorrectionData(
        tried=text("tried"),
        wrong_because=text("wrong_because"),
        fix=text("fix"),
        trigger_context=text("trigger_context"),
    )


def _dedupe_stable(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def synthesise_promotion(group: CorrectionGroup) -> tuple[str, str]:
    """Render ``(procedure, pitfalls)`` text from a group's corrections."""
    triggers: set[str] = set()
    avoids: list[str] = []
    fixes: list[str] = []
    pitfall_lines: list[str] = []

    for obs in group.corrections:
        c = decode_correction(obs)
        if c.trigger_context:
            triggers.add(c.trigger_context.strip())
        if c.tried and c.wrong_because:
            avoids.append(f"- {c.tried} — {c.wrong_because}")
        if c.fix:
            fixes.append("- " + c.fix)
        if c.wrong_because:
            pitfall_lines.append("- " + c.wrong_because)

    lines: list[str] = []
    if triggers:
        lines.append("## When this applies")
        lines.extend("- " + t for t in sorted(triggers))
        lines.append("")
    if avoids:
        lines.append("## Avoid")
        lines.extend(_dedupe_stable(avoids))
        lines.append("")
    if fixes:
        lines.append("## Do")
        lines.extend(_dedupe_stable(fixes))

    procedure = "".join(line + "\n" for line in lines).rstrip("\n")
    pitfalls = "\n".join(_dedupe_stable(pitfall_lines)).rstrip("\n")
    return procedure, pitfalls


def promoted_skill_name(group: CorrectionGroup) -> str:
    """Name given to a skill at its first synthesis."""
    return f"auto: {group.label} ({group.project})"


def session_ids(observations: Iterable[Observation]) -> list[str]:
    """Distinct non-empty session IDs in first-seen order."""
    return _dedupe_stable(o.session_id for o in observations if o.session_id)


def same_source_set(a: list[str], b: list[str]) -> bool:
    """Whether two equally long source lists hold the same members."""
    if len(a) != len(b):
        return False
    members = set(a)
    return all(x in members for x in b)


class SkillPromoter:
    """Turns correction clusters into skills, creating or versioning them."""

    def __init__(
        self,
        reader: _ObservationReader | None,
        skills: _SkillStore | None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._reader = reader
        self._skills = skills
        self._log = logger or logging.getLogger(__name__)

    def promote(self) -> int:
        """Promote every large-enough group; return skills created or bumped."""
        if self._reader is None or self._skills is None:
            return 0
        corrections = self._reader.list_by_project("", "", TYPE_CORRECTION, CORRECTION_FETCH_LIMIT)
        promoted = 0
        for group in group_corrections(corrections):
            if len(group.corrections) < MIN_CORRECTIONS_PER_GROUP:
                continue
            try:
                changed = self.upsert(group)
            except Exception as exc:  # one bad group must not stop the rest
                self._log.warning(
                    "promote skill failed: %s (label=%s project=%s)",
                    exc,
                    group.label,
                    group.project,
                )
                continue
            if changed:
                promoted += 1
        return promoted

    def upsert(self, group: CorrectionGroup) -> bool:
        """Create or version the group's skill; False when nothing changed."""
        if self._skills is None:
            return False
        procedure, pitfalls = synthesise_promotion(group)
        existing = self.find_skill_by_origin(group.agent_id, group.origin_hash)
        sources = session_ids(group.corrections)
        name = promoted_skill_name(group)

        if existing is not None:
            if (
                same_source_set(existing.source_sessions, sources)
                and existing.procedure == procedure
                and existing.pitfalls == pitfalls
            ):
                return False
            name = existing.name

        self._skills.save(
            SkillDraft(
                agent_id=group.agent_id,
                name=name,
                description=(
                    f"Auto-promoted from {len(group.corrections)} corrections in "
                    f"{group.project}: {group.label}"
                ),
                procedure=procedure,
                pitfalls=pitfalls,
                tags=[TAG_PROMOTED, ORIGIN_PREFIX + group.origin_hash, "project:" + group.project],
                source_sessions=sources,
            )
        )
        return True

    def find_skill_by_origin(self, agent_id: str, origin_hash: str) -> Skill | None:
        """The agent's skill tagged with this origin hash, if any."""
        if self._skills is None:
            return None
        wanted = ORIGIN_PREFIX + origin_hash
        return next((s for s in self._skills.list(agent_id) if wanted in s.tags), None)