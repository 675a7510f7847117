"""Context reconciler: decides NEW vs UPDATE per artifact and resolves versions.

Pipeline:
    RepoContext + request text -> ExistingArtifactIndex -> mention matching
    -> ArtifactPlan per artifact -> ReconciledContext

Matching is exact first (the identifier's or label's words appear
contiguously in the request), fuzzy second (difflib ratio over equally
sized word windows). A kind word next to the mention ("... workflow")
decides between a node and a workflow sharing a name. A mention that two
artifacts claim with equal strength is reported as ambiguous instead of
being guessed.

A request that names nothing and asks for nothing new updates the only
existing artifact (of the kind it mentions, if any); with several candidates
it is ambiguous, and only an empty repository falls back to a new node.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from difflib import SequenceMatcher

from promptship.config.models import PolicyConfig
from promptship.errors import AmbiguousMatchError
from promptship.reconciler.index import (
    ExistingArtifactIndex,
    IndexedArtifact,
    parse_label_mapping,
    parse_manifest,
)
from promptship.reconciler.models import ArtifactPlan, ReconciledContext, RepoContext
from promptship.schema.layout import (
    INITIAL_VERSION,
    ArtifactKind,
    IdentifierPolicy,
    bump_patch,
    is_kebab,
    is_token,
    new_identifier,
)

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"[a-z0-9]+")
# verb, article or "new", up to four words, kind noun
_CREATE_RE = re.compile(
    r"\b(?P<verb>create|build|make|generate|scaffold)\s+(?:a|an|new|another)\b"
    r"(?P<between>(?:\s+\S+){0,4}?)\s+(?P<noun>node|workflow|flow)s?\b",
    re.IGNORECASE,
)
_WORKFLOW_RE = re.compile(r"\b(workflow|flow)s?\b", re.IGNORECASE)
_KIND_WORDS = {
    "node": ArtifactKind.NODE,
    "nodes": ArtifactKind.NODE,
    "workflow": ArtifactKind.WORKFLOW,
    "workflows": ArtifactKind.WORKFLOW,
    "flow": ArtifactKind.WORKFLOW,
    "flows": ArtifactKind.WORKFLOW,
}
_NAMED_RE = re.compile(
    r"""(?:called|named|titled)\s+["'`]?([\w][\w .-]{1,60}?)["'`]?(?=[,.;:]|\s+(?:that|which|with|to)\b|$)""",
    re.IGNORECASE,
)
_QUOTED_NAME_RE = re.compile(r"""["'`]([A-Za-z][\w .-]{2,60})["'`]\s+(?:node|workflow)""", re.IGNORECASE)
_STOPWORDS = frozenset(
    """a an the that which who with and or to of for from in on by using use uses
    create build make generate scaffold new node nodes workflow workflows flow
    please can you i want need takes take it its this my our input inputs output
    outputs returns return string number boolean required optional""".split()
)
_MIN_FUZZY_CHARS = 5
_LABEL_WORDS = 4


@dataclass(frozen=True)
class _Match:
    artifact: IndexedArtifact
    start: int
    end: int
    score: float
    kind_hint: bool = False

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def strength(self) -> tuple[float, int, bool]:
        return (self.score, self.length, self.kind_hint)

    def overlaps(self, other: _Match) -> bool:
        return self.start < other.end and other.start < self.end


def _words(text: str) -> list[str]:
    return _WORD_RE.findall(text.lower())


def _mentioned_kinds(words: list[str]) -> set[ArtifactKind]:
    return {_KIND_WORDS[w] for w in words if w in _KIND_WORDS}


def _kind_near(words: list[str], start: int, end: int) -> ArtifactKind | None:
    """Kind named right after (or right before) a mention, else the request's only kind word."""
    for i in (end, start - 1):
        if 0 <= i < len(words) and words[i] in _KIND_WORDS:
            return _KIND_WORDS[words[i]]
    kinds = _mentioned_kinds(words)
    return kinds.pop() if len(kinds) == 1 else None


def _rival_names(artifacts: list[IndexedArtifact]) -> list[str]:
    names = [a.identifier for a in artifacts]
    if len({n.lower() for n in names}) < len(names):
        return [f"{a.kind.value}:{a.identifier}" for a in artifacts]
    return names


class ContextReconciler:
    """Turns a request plus repository context into per-artifact plans."""

    def __init__(self, config: PolicyConfig | None = None) -> None:
        self.config = config or PolicyConfig()

    def reconcile(self, prompt: str, context: RepoContext | None = None) -> ReconciledContext:
        context = context or RepoContext()
        index = ExistingArtifactIndex.from_entries(context.existing_nodes)
        labels = parse_label_mapping(context.flow_id_mapping)
        policy = self.resolve_policy(index)

        # blank request: nothing planned
        plans = self._plan(prompt, index, labels, policy) if _words(prompt) else []

        for plan in plans:
            logger.debug(
                "plan: %s %s %s -> %s",
                plan.action,
                plan.kind.value,
                plan.identifier,
                plan.resolved_version,
            )

        return ReconciledContext(
            plans=tuple(plans),
            index=index,
            labels=labels,
            dependencies=parse_manifest(context.package_json),
            identifier_policy=policy,
            context=context,
        )

    def _plan(
        self,
        prompt: str,
        index: ExistingArtifactIndex,
        labels: dict[str, str],
        policy: IdentifierPolicy,
    ) -> list[ArtifactPlan]:
        matched = self.match(prompt, index, labels)
        intent = self.creation_intent(prompt, index, labels)

        if intent is not None:
            references = [
                ArtifactPlan(
                    identifier=art.identifier,
                    kind=art.kind,
                    action="reference",
                    resolved_version=art.version,
                    previous_version=art.version,
                    label=labels.get(art.identifier),
                )
                for art in matched
            ]
            return [self._create_plan(prompt, policy, index, intent), *references]

        if not matched:
            implied = self.implied_target(prompt, index)
            if implied is None:
                return [self._create_plan(prompt, policy, index, None)]
            logger.info(
                "Request names no artifact; updating the only candidate %s %s",
                implied.kind.value,
                implied.identifier,
            )
            matched = [implied]

        return [_update_plan(art, labels.get(art.identifier)) for art in matched]

    # -- intent ---------------------------------------------------------------

    def creation_intent(
        self,
        prompt: str,
        index: ExistingArtifactIndex,
        labels: dict[str, str] | None = None,
    ) -> re.Match[str] | None:
        """The "create a ... node|workflow" phrase, unless its words name an existing artifact."""
        for m in _CREATE_RE.finditer(prompt):
            between = m.group("between")
            if _words(between) and self._names_existing(between, index, labels):
                continue
            return m
        return None

    def _names_existing(
        self, text: str, index: ExistingArtifactIndex, labels: dict[str, str] | None
    ) -> bool:
        try:
            return bool(self.match(text, index, labels))
        except AmbiguousMatchError:
            return True

    def implied_target(self, prompt: str, index: ExistingArtifactIndex) -> IndexedArtifact | None:
        """The artifact an unnamed update must mean, or None when the repository has none.

        Raises AmbiguousMatchError when several artifacts qualify.
        """
        kinds = _mentioned_kinds(_words(prompt))
        pool = [a for a in index if len(kinds) != 1 or a.kind in kinds]
        if len(pool) > 1:
            raise AmbiguousMatchError(prompt.strip(), _rival_names(pool))
        return pool[0] if pool else None

    # -- identifier policy ---------------------------------------------------

    def resolve_policy(self, index: ExistingArtifactIndex) -> IdentifierPolicy:
        """Configured policy, or the one the repository already uses."""
        if self.config.identifier_policy != "auto":
            return self.config.identifier_policy
        ids = index.identifiers()
        tokens = sum(1 for i in ids if is_token(i))
        kebabs = sum(1 for i in ids if is_kebab(i) and not is_token(i))
        if not tokens and not kebabs:
            return self.config.fallback_identifier_policy
        if tokens and kebabs:
            chosen: IdentifierPolicy = "token" if tokens > kebabs else "kebab"
            logger.warning(
                "Repository mixes identifier policies (%d token, %d kebab); using %s",
                tokens,
                kebabs,
                chosen,
            )
            return chosen
        return "token" if tokens else "kebab"

    # -- matching -------------------------------------------------------------

    def match(
        self,
        prompt: str,
        index: ExistingArtifactIndex,
        labels: dict[str, str] | None = None,
    ) -> list[IndexedArtifact]:
        """Existing artifacts the request refers to, in order of mention.

        Raises AmbiguousMatchError when one mention fits several artifacts
        equally well.
        """
        labels = labels or {}
        words = _words(prompt)
        candidates: list[_Match] = []
        for art in index:
            best: _Match | None = None
            phrases = [_words(art.identifier)]
            label = labels.get(art.identifier)
            if label:
                phrases.append(_words(label))
            for phrase in phrases:
                m = self._match_phrase(art, phrase, words)
                if m is not None and (best is None or m.strength > best.strength):
                    best = m
            if best is not None:
                candidates.append(best)

        candidates.sort(key=lambda m: (-m.score, -m.length, -m.kind_hint, m.start))
        accepted: list[_Match] = []
        for cand in candidates:
            clash = next((a for a in accepted if a.overlaps(cand)), None)
            if clash is None:
                accepted.append(cand)
                continue
            if cand.strength == clash.strength:
                mention = " ".join(words[clash.start : clash.end])
                rivals = [
                    m.artifact
                    for m in candidates
                    if m.overlaps(clash) and m.strength == clash.strength
                ]
                raise AmbiguousMatchError(mention, _rival_names(rivals))
            # Weaker overlapping match is dominated by the accepted one.

        accepted.sort(key=lambda m: m.start)
        return [m.artifact for m in accepted]

    def _match_phrase(
        self, art: IndexedArtifact, phrase: list[str], words: list[str]
    ) -> _Match | None:
        n = len(phrase)
        if not n or n > len(words):
            return None
        best: _Match | None = None
        for i in range(len(words) - n + 1):
            if words[i : i + n] == phrase:
                best = _Match(art, i, i + n, 1.0)
                break
        else:
            target = " ".join(phrase)
            if len(target) < _MIN_FUZZY_CHARS:
                return None
            for i in range(len(words) - n + 1):
                window = " ".join(words[i : i + n])
                ratio = SequenceMatcher(None, target, window).ratio()
                if ratio >= self.config.fuzzy_threshold and (best is None or ratio > best.score):
                    best = _Match(art, i, i + n, ratio)
        if best is None:
            return None
        hinted = _kind_near(words, best.start, best.end) == art.kind
        return _Match(art, best.start, best.end, best.score, hinted)

    # -- new artifacts --------------------------------------------------------

    def _create_plan(
        self,
        prompt: str,
        policy: IdentifierPolicy,
        index: ExistingArtifactIndex,
        intent: re.Match[str] | None,
    ) -> ArtifactPlan:
        if intent is not None:
            kind = _KIND_WORDS[intent.group("noun").lower()]
        elif _WORKFLOW_RE.search(prompt):
            kind = ArtifactKind.WORKFLOW
        else:
            kind = ArtifactKind.NODE
        label = derive_label(prompt, kind)
        identifier = new_identifier(policy, label)
        # Never hand out an identifier that already exists.
        if identifier in index:
            base, n = identifier, 2
            while f"{base}-{n}" in index:
                n += 1
            identifier = f"{base}-{n}"
        return ArtifactPlan(
            identifier=identifier,
            kind=kind,
            action="create",
            resolved_version=INITIAL_VERSION if kind == ArtifactKind.NODE else None,
            label=label,
        )


def _update_plan(art: IndexedArtifact, label: str | None) -> ArtifactPlan:
    if art.kind == ArtifactKind.NODE:
        previous = art.effective_version
        resolved = bump_patch(previous)
    else:
        previous = resolved = None
    return ArtifactPlan(
        identifier=art.identifier,
        kind=art.kind,
        action="update",
        resolved_version=resolved,
        previous_version=previous,
        label=label,
    )


def derive_label(prompt: str, kind: ArtifactKind = ArtifactKind.NODE) -> str:
    """Human-readable label for a new artifact, taken from the request text."""
    for pattern in (_NAMED_RE, _QUOTED_NAME_RE):
        m = pattern.search(prompt)
        if m:
            return _title(m.group(1).strip())

    tail = prompt
    m = _CREATE_RE.search(prompt)
    if m:
        tail = prompt[m.end():]
    content = [w for w in _words(tail) if w not in _STOPWORDS]
    if not content:
        content = [w for w in _words(prompt) if w not in _STOPWORDS]
    if not content:
        return "New Workflow" if kind == ArtifactKind.WORKFLOW else "New Node"
    return _title(" ".join(content[:_LABEL_WORDS]))


def _title(text: str) -> str:
    return " ".join(w if w.isupper() else w.capitalize() for w in text.split())
