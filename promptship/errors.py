"""Error taxonomy for a prompt-to-pull-request cycle.

Every error here is terminal for the current request. Messages are kept
verbatim (including upstream API text) so the failing phase or rule is
always visible to the caller.
"""

from __future__ import annotations


class PromptShipError(Exception):
    """Base class for all promptship failures."""


class GenerationError(PromptShipError):
    """The generator failed or returned something that is not the agreed shape."""

    def __init__(self, message: str, *, raw: str | None = None) -> None:
        self.raw = raw
        super().__init__(message)


class ChangeSetValidationError(PromptShipError):
    """A generated file set broke a structural or mutation-safety rule.

    ``check`` is the validator stage (completeness, placement, auxiliary,
    mutation_safety); ``rule`` names the specific rule, defaulting to the stage.
    """

    def __init__(
        self, check: str, path: str | None, message: str, *, rule: str | None = None
    ) -> None:
        self.check = check
        self.rule = rule or check
        self.path = path
        self.detail = message
        where = f" [{path}]" if path else ""
        label = check if self.rule == check else f"{check}/{self.rule}"
        super().__init__(f"{label}{where}: {message}")

    def feedback(self) -> str:
        """Corrective text handed back to the generator on retry."""
        target = f" in `{self.path}`" if self.path else ""
        return (
            f"The previous attempt was rejected by rule '{self.rule}'{target}: "
            f"{self.detail}. Fix this and return the complete file set again."
        )


class RemoteTransactionError(PromptShipError):
    """A remote publish phase failed; later phases were not attempted."""

    def __init__(self, phase: str, detail: str, *, status: int | None = None) -> None:
        self.phase = phase
        self.detail = detail
        self.status = status
        super().__init__(f"{phase} failed: {detail}")


class AmbiguousMatchError(PromptShipError):
    """The request could refer to more than one existing artifact."""

    def __init__(self, mention: str, candidates: list[str]) -> None:
        self.mention = mention
        self.candidates = sorted(candidates)
        super().__init__(
            f"'{mention}' matches several existing artifacts: "
            f"{', '.join(self.candidates)}. Name the one you mean."
        )
