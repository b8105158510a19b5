"""Parsing of command tokens into literals and bundle references.

Any token starting with ``@`` is a reference:

- ``@group.name`` points at one bundle
- ``@group.*`` points at every bundle in ``group``, in declaration order
"""

from dataclasses import dataclass

from panout.errors import MalformedReference

REFERENCE_PREFIX = "@"
WILDCARD = "*"


@dataclass(frozen=True)
class Literal:
    """A plain shell command."""

    command: str


@dataclass(frozen=True)
class BundleRef:
    """Reference to a single bundle: ``@group.name``."""

    group: str
    name: str

    def __str__(self) -> str:
        return f"{REFERENCE_PREFIX}{self.group}.{self.name}"


@dataclass(frozen=True)
class GroupRef:
    """Reference to every bundle of a group: ``@group.*``."""

    group: str

    def __str__(self) -> str:
        return f"{REFERENCE_PREFIX}{self.group}.{WILDCARD}"


Token = Literal | BundleRef | GroupRef


def split_target(target: str) -> tuple[str, str] | None:
    """Split ``group.name`` on the first dot.

    Returns:
        ``(group, name)``, or None if either half is empty or there is no dot.
    """
    group, dot, name = target.partition(".")
    if not dot or not group or not name:
        return None
    return group, name


def parse_target(target: str) -> BundleRef | GroupRef:
    """Parse a ``group.name`` / ``group.*`` target (without the ``@``).

    Raises:
        MalformedReference: If the target has no dot or an empty half.
    """
    parts = split_target(target)
    if parts is None:
        raise MalformedReference(target)
    group, name = parts
    if name == WILDCARD:
        return GroupRef(group)
    return BundleRef(group, name)


def parse_token(text: str) -> Token:
    """Classify a command token.

    Args:
        text: Raw token from a ``cmd`` field.

    Returns:
        A Literal for ordinary commands, otherwise a BundleRef or GroupRef.

    Raises:
        MalformedReference: If the token starts with ``@`` but is not a valid reference.
    """
    if not text.startswith(REFERENCE_PREFIX):
        return Literal(text)
    try:
        return parse_target(text[len(REFERENCE_PREFIX) :])
    except MalformedReference:
        raise MalformedReference(text) from None
