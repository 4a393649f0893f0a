"""Conventional commit parsing.

Turns raw commit messages into :class:`ParsedCommit` records::

    :sparkles: feat(core)!: add widget (#42)

    Longer body text.

    BREAKING CHANGE: removes old API
    Fixes #10

A header that does not have the ``type(scope)!: description`` shape is
kept as an *unclassified* record (empty type) instead of being dropped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from release_npm.vcs.git import LOG_RECORD_SEPARATOR

_GITMOJI = r"(?:[\U0001F300-\U0001FAFF]|:[a-z0-9+_\-]+:)"

HEADER_PATTERN = re.compile(
    rf"""
    ^\s*
    (?:(?P<gitmoji1>{_GITMOJI}))?
    \s*
    (?P<type>\w+)(?:\((?P<scope>[^)]+)\))?(?P<breaking>!)?:
    \s*
    (?:(?P<gitmoji2>{_GITMOJI}))?
    \s*
    (?P<description>.+?)
    \s*
    (?:\(\#(?P<pr>\d+)\))?
    \s*$
    """,
    re.VERBOSE,
)

BREAKING_PATTERN = re.compile(r"BREAKING CHANGE:\s*(?P<breaks>.+)", re.IGNORECASE)

_FOOTER_PATTERNS = (
    re.compile(r"^BREAKING CHANGE:"),
    re.compile(r"^[A-Za-z-]+(-[A-Za-z]+)*:\s+.+"),
    re.compile(r"^[A-Za-z-]+\s+#\d+"),
)

# Checked in this order; a line can match more than one verb.
_ISSUE_VERBS: dict[str, re.Pattern[str]] = {
    "fixes": re.compile(r"^Fixes", re.IGNORECASE),
    "closes": re.compile(r"^Closes", re.IGNORECASE),
    "resolves": re.compile(r"^Resolves", re.IGNORECASE),
    "related": re.compile(r"^(Related to|Related)", re.IGNORECASE),
    "refs": re.compile(r"^Refs?", re.IGNORECASE),
}

_ISSUE_NUMBER = re.compile(r"#(\d+)")


@dataclass(frozen=True)
class IssueRefs:
    """Issue numbers referenced from a commit footer, grouped by verb."""

    fixes: tuple[int, ...] = ()
    closes: tuple[int, ...] = ()
    resolves: tuple[int, ...] = ()
    related: tuple[int, ...] = ()
    refs: tuple[int, ...] = ()

    def as_dict(self) -> dict[str, list[int]]:
        return {verb: list(getattr(self, verb)) for verb in _ISSUE_VERBS}

    def __bool__(self) -> bool:
        return any(getattr(self, verb) for verb in _ISSUE_VERBS)


@dataclass(frozen=True)
class ParsedCommit:
    """A commit parsed according to the conventional commit shape.

    Attributes:
        type: Commit type token (``feat``, ``fix``...). Empty when the
            header is not conventional.
        scope: Optional scope in parentheses.
        breaking: ``!`` in the header or a ``BREAKING CHANGE:`` footer.
        description: Header text after the colon, without PR reference.
        gitmoji: Emoji markers found before the type or after the colon.
        pr: Pull request number from a trailing ``(#123)``.
        breaks: Text of the ``BREAKING CHANGE:`` footer.
        issues: Issue references from the footer.
        header: Original header line.
        body: Body text.
        footer: Footer block.
        short_hash: Abbreviated commit hash.
        full_hash: Full commit hash.
    """

    type: str
    description: str
    short_hash: str
    full_hash: str
    header: str = ""
    body: str = ""
    footer: str = ""
    scope: str | None = None
    breaking: bool = False
    gitmoji: tuple[str, ...] = ()
    pr: str | None = None
    breaks: str | None = None
    issues: IssueRefs = field(default_factory=IssueRefs)

    @property
    def is_classified(self) -> bool:
        """``False`` for commits whose header did not parse."""
        return bool(self.type)


def parse_issue_footers(footer: str) -> IssueRefs:
    """Collect ``#123`` references per link verb from a footer block."""
    found: dict[str, list[int]] = {verb: [] for verb in _ISSUE_VERBS}

    for line in (raw.strip() for raw in footer.split("\n")):
        if not line:
            continue
        for verb, pattern in _ISSUE_VERBS.items():
            if pattern.match(line):
                found[verb].extend(int(n) for n in _ISSUE_NUMBER.findall(line))

    return IssueRefs(**{verb: tuple(numbers) for verb, numbers in found.items()})


def parse_commit(
    header: str,
    body: str,
    footer: str,
    short_hash: str,
    full_hash: str,
) -> ParsedCommit:
    """Parse one commit.

    Args:
        header: First line of the message.
        body: Message body (without footer).
        footer: Trailing footer block.
        short_hash: Abbreviated hash.
        full_hash: Full hash.

    Returns:
        A classified record, or an unclassified one (empty type and
        description) when the header does not match.
    """
    match = HEADER_PATTERN.match(header)
    if not match:
        return ParsedCommit(
            type="",
            description="",
            short_hash=short_hash,
            full_hash=full_hash,
            header=header,
            body=body,
            footer=footer,
        )

    breaks_match = BREAKING_PATTERN.search(footer)
    breaks = breaks_match["breaks"].strip() if breaks_match else None

    return ParsedCommit(
        type=match["type"],
        scope=match["scope"],
        breaking=bool(match["breaking"]) or breaks is not None,
        description=match["description"].strip(),
        gitmoji=tuple(g for g in (match["gitmoji1"], match["gitmoji2"]) if g),
        pr=match["pr"],
        breaks=breaks,
        issues=parse_issue_footers(footer),
        short_hash=short_hash,
        full_hash=full_hash,
        header=header,
        body=body,
        footer=footer,
    )


def is_footer_line(line: str) -> bool:
    """Whether ``line`` looks like a git trailer / footer line."""
    if not line:
        return False
    return any(pattern.match(line) for pattern in _FOOTER_PATTERNS)


def split_body_and_footer(raw: str) -> tuple[str, str]:
    """Split a message (without header) into ``(body, footer)``.

    The footer is the maximal block of footer lines adjoining the end
    of the message; a blank line above that block ends it.
    """
    lines = raw.replace("\r\n", "\n").strip().split("\n")

    footer_start = -1
    for i in range(len(lines) - 1, -1, -1):
        line = lines[i].strip()
        if is_footer_line(line):
            footer_start = i
        elif footer_start != -1 and line == "":
            break
        elif footer_start == -1:
            # Last line is plain text: no footer adjoins the end.
            break

    if footer_start == -1:
        return "\n".join(lines).strip(), ""
    return "\n".join(lines[:footer_start]).strip(), "\n".join(lines[footer_start:]).strip()


def parse_raw_commit(raw: str) -> ParsedCommit:
    """Parse one ``full_hash\\nshort_hash\\nsubject\\nbody...`` record.

    A record with an empty subject becomes an unclassified commit.
    """
    lines = raw.strip().split("\n")
    lines += [""] * (3 - len(lines))
    full_hash, short_hash, subject, *rest = lines
    body, footer = split_body_and_footer("\n".join(rest))
    return parse_commit(subject, body, footer, short_hash.strip(), full_hash.strip())


def parse_log(raw_log: str) -> list[ParsedCommit]:
    """Parse the output of :meth:`GitRepository.get_log`, keeping its order."""
    commits = []
    for record in raw_log.split(LOG_RECORD_SEPARATOR):
        if not record.strip():
            continue
        commits.append(parse_raw_commit(record))
    return commits
