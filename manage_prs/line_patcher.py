#!/usr/bin/env python3
"""
Line-oriented edits for YAML workflows, Markdown and plain text files.

YAML is edited line by line instead of being loaded and dumped again, so
comments, quoting and key order survive. Block boundaries are derived from
indentation. Every YAML edit is checked with yaml.safe_load before it is
returned.
"""

import logging
import re
from typing import Callable, Dict, List, Optional, Tuple

import yaml

from manage_prs.errors import MalformedOutputError, NotFoundError
from manage_prs.text_patcher import PatchOutcome

logger = logging.getLogger(__name__)


# ============================================================================
# VALIDATION
# ============================================================================

def validate_yaml(text: str) -> None:
    """
    Raises:
        MalformedOutputError: If text is not valid YAML
    """
    try:
        yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise MalformedOutputError(f"Document is not valid YAML: {e}")


def validate_text(text: str) -> None:
    """Plain text has no structure to check."""


def _finish_yaml(original: str, new_text: str) -> PatchOutcome:
    if new_text == original:
        return PatchOutcome(original, False)
    validate_yaml(new_text)
    return PatchOutcome(new_text, True)


# ============================================================================
# LINE HELPERS
# ============================================================================

def split_lines(text: str) -> List[str]:
    return text.splitlines(keepends=True)


def _newline(lines: List[str]) -> str:
    for line in lines:
        if line.endswith('\r\n'):
            return '\r\n'
        if line.endswith('\n'):
            return '\n'
    return '\n'


def _content(line: str) -> str:
    return line.rstrip('\r\n')


def indent_of(line: str) -> int:
    return len(line) - len(line.lstrip(' \t'))


def _is_blank_or_comment(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped.startswith('#')


def key_column(line: str) -> int:
    """Column of the key on a mapping line, after any '- ' list marker."""
    return len(re.match(r'^[ \t]*(?:-[ \t]+)?', line).group(0))


def find_key(
    lines: List[str],
    key: str,
    start: int = 0,
    stop: Optional[int] = None,
    column: Optional[int] = None
) -> Optional[int]:
    """
    Index of the first uncommented line defining key, or None.

    Args:
        lines: Document lines
        key: Mapping key to look for
        start: First line to inspect
        stop: Line index to stop before (default: end of document)
        column: Only accept the key at this column
    """
    pattern = re.compile(rf'^[ \t]*(?:-[ \t]+)?{re.escape(key)}[ \t]*:(?:[ \t]|\r?$)')
    end = len(lines) if stop is None else stop
    for i in range(start, end):
        if pattern.match(lines[i]) and (column is None or key_column(lines[i]) == column):
            return i
    return None


def inline_value(line: str) -> str:
    """Text after 'key:' on the same line, without a trailing comment."""
    value = _content(line).split(':', 1)[1]
    value = re.sub(r'[ \t]+#.*$', '', value)
    return value.strip()


def block_end(lines: List[str], index: int) -> int:
    """
    Index just past the block owned by the key at lines[index].

    The block holds every following line indented deeper than the key, plus
    list items at the key's own indentation ("key:\\n- item" is valid YAML).
    Trailing blank and comment lines are not part of the block.
    """
    column = key_column(lines[index])
    end = index + 1
    i = index + 1
    while i < len(lines):
        line = lines[i]
        if _is_blank_or_comment(line):
            i += 1
            continue
        current = indent_of(line)
        if current > column or (current == column and line.lstrip().startswith('-')):
            end = i + 1
            i += 1
            continue
        break
    return end


def item_end(lines: List[str], index: int) -> int:
    """Index just past the list item whose '- ' marker is on lines[index]."""
    dash = indent_of(lines[index])
    end = index + 1
    for i in range(index + 1, len(lines)):
        if _is_blank_or_comment(lines[i]):
            continue
        if indent_of(lines[i]) > dash:
            end = i + 1
            continue
        break
    return end


def ancestors(lines: List[str], index: int) -> List[int]:
    """Indexes of the lines enclosing lines[index], innermost first."""
    found = []
    threshold = indent_of(lines[index])
    for i in range(index - 1, -1, -1):
        line = lines[i]
        if _is_blank_or_comment(line):
            continue
        current = indent_of(line)
        if current < threshold:
            found.append(i)
            threshold = current
            if current == 0:
                break
    return found


def _child_column(lines: List[str], index: int, end: int) -> Optional[int]:
    for i in range(index + 1, end):
        if not _is_blank_or_comment(lines[i]):
            return indent_of(lines[i])
    return None


def _last_content(lines: List[str], index: int, end: int) -> int:
    last = index
    for i in range(index + 1, end):
        if not _is_blank_or_comment(lines[i]):
            last = i
    return last


# ============================================================================
# YAML EDITS
# ============================================================================

def has_key(text: str, key: str) -> bool:
    return find_key(split_lines(text), key) is not None


def delete_key(text: str, key: str) -> PatchOutcome:
    """
    Delete the first occurrence of key together with its value block.

    Inline values ("key: value") remove one line; block values also remove
    the nested lines and list items that belong to the key.

    Raises:
        NotFoundError: If the key does not exist
        MalformedOutputError: If the result is not valid YAML
    """
    lines = split_lines(text)
    index = find_key(lines, key)
    if index is None:
        raise NotFoundError(f"Key '{key}' not found")

    end = block_end(lines, index)
    if lines[index].lstrip().startswith('-'):
        # the key opens a list item; keep the item alive by moving the marker
        following = end
        if following < len(lines) and indent_of(lines[following]) == key_column(lines[index]):
            marker = lines[index][:key_column(lines[index])]
            lines[following] = marker + lines[following].lstrip(' \t')
    # a final line without newline leaves the previous one's line break dangling
    if end == len(lines) and index > 0 and not lines[-1].endswith('\n'):
        lines[index - 1] = _content(lines[index - 1])
    del lines[index:end]
    logger.debug(f"Removed key '{key}' ({end - index} line(s))")
    return _finish_yaml(text, ''.join(lines))


def comment_out_key(text: str, key: str, start: int = 0, note: str = '') -> PatchOutcome:
    """
    Turn the first uncommented 'key:' line at or after start into a comment.

    Raises:
        NotFoundError: If no uncommented line defines the key
    """
    lines = split_lines(text)
    index = find_key(lines, key, start)
    if index is None:
        raise NotFoundError(f"Key '{key}' not found")

    line = lines[index]
    body = _content(line)
    ending = line[len(body):]
    indent = body[:indent_of(body)]
    commented = f"{indent}# {body.strip()}"
    if note:
        commented += f"  # {note}"
    lines[index] = commented + ending
    return _finish_yaml(text, ''.join(lines))


def ensure_mapping(text: str, parent_index: int, block_key: str, entries: Dict[str, str]) -> PatchOutcome:
    """
    Make sure the mapping under parent_index has block_key with the given entries.

    Existing entries with a different value are rewritten in place, missing
    entries are appended after the last entry of the block, and a missing
    block is created right below the parent line. Indentation follows the
    parent's existing children; two spaces per level otherwise.

    Args:
        text: YAML document
        parent_index: Line index of the owning key, e.g. a job
        block_key: Name of the child mapping, e.g. "permissions"
        entries: Required key/value pairs, in insertion order
    """
    lines = split_lines(text)
    newline = _newline(lines)
    parent_column = key_column(lines[parent_index])
    parent_end = block_end(lines, parent_index)
    child_column = _child_column(lines, parent_index, parent_end)
    if child_column is None or child_column <= parent_column:
        child_column = parent_column + 2
    unit = child_column - parent_column

    block_index = find_key(lines, block_key, parent_index + 1, parent_end, column=child_column)
    if block_index is not None and inline_value(lines[block_index]):
        logger.warning(
            f"⚠ Replacing inline value '{inline_value(lines[block_index])}' of '{block_key}' with a mapping"
        )
        del lines[block_index]
        block_index = None

    if block_index is None:
        new_lines = [' ' * child_column + f"{block_key}:{newline}"]
        new_lines += [' ' * (child_column + unit) + f"{k}: {v}{newline}" for k, v in entries.items()]
        if not lines[parent_index].endswith('\n'):
            lines[parent_index] += newline
        lines[parent_index + 1:parent_index + 1] = new_lines
        logger.info(f"ⓘ Added '{block_key}' block with {', '.join(entries)}")
        return _finish_yaml(text, ''.join(lines))

    end = block_end(lines, block_index)
    entry_column = _child_column(lines, block_index, end)
    if entry_column is None or entry_column <= child_column:
        entry_column = child_column + unit

    for key, value in entries.items():
        index = find_key(lines, key, block_index + 1, end, column=entry_column)
        if index is not None:
            if inline_value(lines[index]) != value:
                body = _content(lines[index])
                lines[index] = ' ' * entry_column + f"{key}: {value}" + lines[index][len(body):]
                logger.info(f"ⓘ Set '{block_key}.{key}' to '{value}'")
            continue
        insert_at = _last_content(lines, block_index, end) + 1
        if not lines[insert_at - 1].endswith('\n'):
            lines[insert_at - 1] += newline
        lines.insert(insert_at, ' ' * entry_column + f"{key}: {value}{newline}")
        end += 1
        logger.info(f"ⓘ Added '{block_key}.{key}: {value}'")

    return _finish_yaml(text, ''.join(lines))


# ============================================================================
# MARKDOWN AND PLAIN TEXT
# ============================================================================

_HEADING = re.compile(r'^##?[ \t]+', re.MULTILINE)


def find_section(text: str, title: str) -> Optional[Tuple[int, int]]:
    """
    Span of a level 1 or 2 Markdown section, heading included.

    The section ends at the next level 1 or 2 heading; deeper headings
    belong to it. Title matching is case-insensitive.
    """
    match = re.search(
        rf'^##?[ \t]+{re.escape(title)}[ \t]*\r?$',
        text,
        re.MULTILINE | re.IGNORECASE
    )
    if not match:
        return None
    following = _HEADING.search(text, match.end())
    return match.start(), following.start() if following else len(text)


def rewrite_section(text: str, title: str, rewrite: Callable[[str], str]) -> PatchOutcome:
    """
    Apply rewrite to the body of a Markdown section only.

    Raises:
        NotFoundError: If the section does not exist
    """
    span = find_section(text, title)
    if span is None:
        raise NotFoundError(f"Section '{title}' not found")
    start, end = span
    new_text = text[:start] + rewrite(text[start:end]) + text[end:]
    return PatchOutcome(new_text, new_text != text)


def append_line_unique(text: str, line: str, comment: Optional[str] = None) -> PatchOutcome:
    """
    Append line (preceded by an optional comment line) unless it is present.

    A leading '/' is ignored when comparing, so '/.commitinfo' and
    '.commitinfo' count as the same ignore entry.
    """
    wanted = line.strip().lstrip('/')
    if any(existing.strip().lstrip('/') == wanted for existing in text.splitlines()):
        return PatchOutcome(text, False)

    lines = split_lines(text)
    newline = _newline(lines)
    addition = ''
    if text and not text.endswith('\n'):
        addition += newline
    if text:
        addition += newline
    if comment:
        addition += f"# {comment}{newline}"
    addition += line + newline
    return PatchOutcome(text + addition, True)
