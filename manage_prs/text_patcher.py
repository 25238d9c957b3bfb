#!/usr/bin/env python3
"""
Format-preserving edits for JSON and JSON-with-comments documents.

Edits work on the raw text instead of a load/dump round trip, so key order,
spacing, comments and line endings outside the edited member stay untouched.
A small scanner tracks string literals, escape sequences, comments and
bracket depth to find the span of a member.

Every edit returns a PatchOutcome. An unchanged document is returned as the
same string with changed=False; a changed document is parsed before it is
returned and raises MalformedOutputError if it no longer parses.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from manage_prs.config import DEFAULT_INDENT
from manage_prs.errors import (
    AmbiguousIndentationError,
    MalformedOutputError,
    NotFoundError,
    PatchError,
)

logger = logging.getLogger(__name__)

_WHITESPACE = " \t\r\n"
_PRIMITIVE_END = ",}] \t\r\n/"


# ============================================================================
# DATA TYPES
# ============================================================================

class Operation(Enum):
    SET = "set"
    DELETE = "delete"
    APPEND_UNIQUE = "append_unique"
    REMOVE_MATCHING = "remove_matching"


@dataclass
class PatchOutcome:
    text: str
    changed: bool


@dataclass
class EditRequest:
    """
    One structural edit of a document.

    Attributes:
        document: Raw document text
        path: Keys leading to the member, e.g. ["common", "license"]
        operation: What to do with the member
        value: New value (SET) or array item (APPEND_UNIQUE)
        after: Neighbour keys a new member (SET) is inserted after, first match wins
        before: Neighbour keys a new member (SET) is inserted before, tried after `after`
        predicate: Item test for REMOVE_MATCHING
        index: Insert position for APPEND_UNIQUE, None appends at the end
    """
    document: str
    path: Sequence[str]
    operation: Operation
    value: Any = None
    after: Sequence[str] = ()
    before: Sequence[str] = ()
    predicate: Optional[Callable[[Any], bool]] = None
    index: Optional[int] = None


@dataclass
class Member:
    key: str
    key_start: int
    key_end: int
    value_start: int
    value_end: int


@dataclass
class ObjectSpan:
    open: int
    close: int
    members: List[Member] = field(default_factory=list)

    def get(self, key: str) -> Optional[Member]:
        # duplicate keys: the last one wins, as in json.loads
        found = None
        for member in self.members:
            if member.key == key:
                found = member
        return found


@dataclass
class Item:
    start: int
    end: int
    value: Any


@dataclass
class ArraySpan:
    open: int
    close: int
    items: List[Item] = field(default_factory=list)


@dataclass
class Location:
    """Where a member lives: the member itself and the object containing it."""
    path: Tuple[str, ...]
    member: Member
    parent: ObjectSpan

    @property
    def start(self) -> int:
        return self.member.value_start

    @property
    def end(self) -> int:
        return self.member.value_end


# ============================================================================
# SCANNER
# ============================================================================

def _skip_string(text: str, i: int) -> int:
    """Return the index just past the string literal starting at text[i]."""
    start = i
    i += 1
    n = len(text)
    while i < n:
        char = text[i]
        if char == '\\':
            i += 2
            continue
        if char == '"':
            return i + 1
        if char == '\n':
            break
        i += 1
    raise PatchError(f"Unterminated string literal at offset {start}")


def _skip_trivia(text: str, i: int) -> int:
    """Skip whitespace and // or /* */ comments."""
    n = len(text)
    while i < n:
        char = text[i]
        if char in _WHITESPACE:
            i += 1
        elif text.startswith('//', i):
            eol = text.find('\n', i)
            i = n if eol == -1 else eol
        elif text.startswith('/*', i):
            end = text.find('*/', i + 2)
            if end == -1:
                raise PatchError(f"Unterminated comment at offset {i}")
            i = end + 2
        else:
            break
    return i


def _skip_value(text: str, i: int) -> int:
    """Return the end index of the value starting at text[i]."""
    n = len(text)
    if i >= n:
        raise PatchError("Unexpected end of document")

    char = text[i]
    if char == '"':
        return _skip_string(text, i)

    if char in '{[':
        depth = 0
        while i < n:
            char = text[i]
            if char == '"':
                i = _skip_string(text, i)
                continue
            if text.startswith('//', i) or text.startswith('/*', i):
                i = _skip_trivia(text, i)
                continue
            if char in '{[':
                depth += 1
            elif char in '}]':
                depth -= 1
                if depth == 0:
                    return i + 1
            i += 1
        raise PatchError("Unbalanced brackets")

    end = i
    while end < n and text[end] not in _PRIMITIVE_END:
        end += 1
    if end == i:
        raise PatchError(f"Expected a value at offset {i}")
    return end


def _parse_object(text: str, open_index: int) -> ObjectSpan:
    """List the members of the object whose '{' is at open_index."""
    obj = ObjectSpan(open=open_index, close=-1)
    n = len(text)
    i = _skip_trivia(text, open_index + 1)
    while i < n and text[i] != '}':
        if text[i] != '"':
            raise PatchError(f"Expected a property name at offset {i}")
        key_end = _skip_string(text, i)
        try:
            key = json.loads(text[i:key_end])
        except ValueError as e:
            raise PatchError(f"Invalid property name at offset {i}: {e}")
        colon = _skip_trivia(text, key_end)
        if colon >= n or text[colon] != ':':
            raise PatchError(f"Expected ':' at offset {colon}")
        value_start = _skip_trivia(text, colon + 1)
        value_end = _skip_value(text, value_start)
        obj.members.append(Member(key, i, key_end, value_start, value_end))

        i = _skip_trivia(text, value_end)
        if i < n and text[i] == ',':
            i = _skip_trivia(text, i + 1)
        elif i < n and text[i] != '}':
            raise PatchError(f"Expected ',' or '}}' at offset {i}")
    if i >= n:
        raise PatchError("Unterminated object")
    obj.close = i
    return obj


def _parse_array(text: str, open_index: int) -> ArraySpan:
    arr = ArraySpan(open=open_index, close=-1)
    n = len(text)
    i = _skip_trivia(text, open_index + 1)
    while i < n and text[i] != ']':
        end = _skip_value(text, i)
        arr.items.append(Item(i, end, _decode(text[i:end])))
        i = _skip_trivia(text, end)
        if i < n and text[i] == ',':
            i = _skip_trivia(text, i + 1)
        elif i < n and text[i] != ']':
            raise PatchError(f"Expected ',' or ']' at offset {i}")
    if i >= n:
        raise PatchError("Unterminated array")
    arr.close = i
    return arr


def _root_object(text: str) -> ObjectSpan:
    i = _skip_trivia(text, 1 if text.startswith('\ufeff') else 0)
    if i >= len(text) or text[i] != '{':
        raise NotFoundError("Document root is not an object")
    return _parse_object(text, i)


# ============================================================================
# PARSING AND VALIDATION
# ============================================================================

def strip_comments(text: str) -> str:
    """Remove comments and trailing commas, leaving string literals intact."""
    out = []
    i = 0
    n = len(text)
    while i < n:
        char = text[i]
        if char == '"':
            end = _skip_string(text, i)
            out.append(text[i:end])
            i = end
        elif text.startswith('//', i) or text.startswith('/*', i):
            end = _skip_trivia(text, i)
            # keep line breaks so error positions stay meaningful
            out.append('\n' * text.count('\n', i, end))
            i = end
        elif char == ',':
            following = _skip_trivia(text, i + 1)
            if following >= n or text[following] not in '}]':
                out.append(char)
            i += 1
        else:
            out.append(char)
            i += 1
    return ''.join(out)


def parse_document(text: str) -> Any:
    """
    Parse a JSON or JSON-with-comments document.

    Raises:
        MalformedOutputError: If the text does not parse
    """
    if text.startswith('\ufeff'):
        text = text[1:]
    try:
        return json.loads(strip_comments(text))
    except (ValueError, PatchError) as e:
        raise MalformedOutputError(f"Document is not valid JSON: {e}")


def _decode(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return parse_document(raw)


def _same_value(a: Any, b: Any) -> bool:
    """Strict equality: 1, 1.0 and true are different values."""
    return json.dumps(a, sort_keys=True) == json.dumps(b, sort_keys=True)


def _finish(original: str, new_text: str) -> PatchOutcome:
    if new_text == original:
        return PatchOutcome(original, False)
    parse_document(new_text)
    return PatchOutcome(new_text, True)


# ============================================================================
# LAYOUT HELPERS
# ============================================================================

def _newline(text: str) -> str:
    return '\r\n' if '\r\n' in text else '\n'


def _line_start(text: str, i: int) -> int:
    return text.rfind('\n', 0, i) + 1


def _line_end(text: str, i: int) -> int:
    """Index of the line break ending the line containing i (before any '\\r')."""
    eol = text.find('\n', i)
    if eol == -1:
        return len(text)
    if eol > 0 and text[eol - 1] == '\r':
        return eol - 1
    return eol


def _indent_at(text: str, i: int) -> str:
    start = _line_start(text, i)
    return re.match(r'[ \t]*', text[start:]).group(0)


def _owns_line(text: str, i: int) -> bool:
    """True when only whitespace precedes text[i] on its line."""
    return text[_line_start(text, i):i].strip(' \t') == ''


def _sample_indent_unit(text: str) -> str:
    tabs = 0
    widths = []
    for line in text.splitlines():
        if not line.strip():
            continue
        leading = line[:len(line) - len(line.lstrip(' \t'))]
        if not leading:
            continue
        if leading.startswith('\t'):
            tabs += 1
        else:
            widths.append(len(leading) - len(leading.lstrip(' ')))
    if tabs > len(widths):
        return '\t'
    if widths and len(widths) > tabs:
        return ' ' * min(widths)
    return DEFAULT_INDENT


def detect_indent(text: str, obj: ObjectSpan) -> Tuple[str, str]:
    """
    Infer the indentation for a new member of obj.

    The per-level increment is the difference between a member line and the
    line holding the opening brace; when that is not available the whole
    document is sampled, and DEFAULT_INDENT is used when sampling finds nothing.

    Returns:
        Tuple of (member_indent, unit)

    Raises:
        AmbiguousIndentationError: If sibling members mix tabs and spaces
    """
    parent_indent = _indent_at(text, obj.open)
    own = [_indent_at(text, m.key_start) for m in obj.members if _owns_line(text, m.key_start)]

    if own:
        if len(set(own)) > 1 and any('\t' in i for i in own) and any(' ' in i for i in own):
            raise AmbiguousIndentationError(
                f"Members of the object at offset {obj.open} mix tabs and spaces"
            )
        member_indent = own[-1]
        if member_indent.startswith(parent_indent) and len(member_indent) > len(parent_indent):
            return member_indent, member_indent[len(parent_indent):]
        return member_indent, _sample_indent_unit(text)

    unit = _sample_indent_unit(text)
    return parent_indent + unit, unit


def render_value(value: Any, indent: str, unit: str, newline: str = '\n') -> str:
    """
    Serialize value for insertion at a line indented by indent.

    Scalars are rendered inline; non-empty objects and arrays span multiple
    lines, one member per line, indented by unit per level.
    """
    inner = indent + unit
    if isinstance(value, dict) and value:
        lines = [
            f"{inner}{json.dumps(k, ensure_ascii=False)}: {render_value(v, inner, unit, newline)}"
            for k, v in value.items()
        ]
        return '{' + newline + (',' + newline).join(lines) + newline + indent + '}'
    if isinstance(value, (list, tuple)) and value:
        lines = [f"{inner}{render_value(v, inner, unit, newline)}" for v in value]
        return '[' + newline + (',' + newline).join(lines) + newline + indent + ']'
    if isinstance(value, dict):
        return '{}'
    if isinstance(value, (list, tuple)):
        return '[]'
    return json.dumps(value, ensure_ascii=False)


def _separator(text: str, obj: ObjectSpan) -> str:
    """Key/value separator used by the existing members (': ' or ':')."""
    for member in obj.members:
        between = text[member.key_end:member.value_start]
        if re.fullmatch(r'[ \t]*:[ \t]*', between):
            return between
    return ': '


def _comma_after(text: str, end: int) -> Optional[int]:
    """Index of the comma following a value that ends at end, or None."""
    i = _skip_trivia(text, end)
    if i < len(text) and text[i] == ',':
        return i
    return None


def _is_line_comment(rest: str) -> bool:
    """True when rest (the tail of a line) is a single comment."""
    if rest.startswith('//'):
        return True
    return rest.startswith('/*') and rest.endswith('*/') and '*/' not in rest[2:-2]


def _insert_line_after(text: str, end: int, line: str, newline: str) -> str:
    """
    Insert line as the next sibling of the value ending at end.

    The value is expected to own its line. A comment trailing the value stays
    on the value's line; only the comma is added in front of it.
    """
    comma = _comma_after(text, end)
    if comma is None:
        # last sibling: it gets the comma, the new line does not
        eol = _line_end(text, end)
        if _is_line_comment(text[end:eol].strip(' \t')):
            return text[:end] + ',' + text[end:eol] + newline + line + text[eol:]
        return text[:end] + ',' + newline + line + text[end:]
    eol = _line_end(text, comma)
    rest = text[comma + 1:eol].strip(' \t')
    pos = eol if rest == '' or _is_line_comment(rest) else comma + 1
    return text[:pos] + newline + line + ',' + text[pos:]


# ============================================================================
# LOCATE
# ============================================================================

def _format_path(path: Sequence[str]) -> str:
    return '.'.join(str(p) for p in path)


def locate_object(document: str, path: Sequence[str]) -> ObjectSpan:
    """
    Find the object at path; an empty path is the root object.

    Raises:
        NotFoundError: If a segment is missing or not an object
    """
    obj = _root_object(document)
    for depth, key in enumerate(path):
        member = obj.get(key)
        if member is None:
            raise NotFoundError(f"'{_format_path(path[:depth + 1])}' not found")
        if document[member.value_start] != '{':
            raise NotFoundError(f"'{_format_path(path[:depth + 1])}' is not an object")
        obj = _parse_object(document, member.value_start)
    return obj


def locate(document: str, path: Sequence[str]) -> Location:
    """
    Find the value span of the member at path.

    Args:
        document: Raw document text
        path: Keys leading to the member

    Returns:
        Location whose start/end delimit the raw value text

    Raises:
        NotFoundError: If any path segment is absent
    """
    if not path:
        raise ValueError("path must not be empty")
    parent = locate_object(document, path[:-1])
    member = parent.get(path[-1])
    if member is None:
        raise NotFoundError(f"'{_format_path(path)}' not found")
    return Location(tuple(path), member, parent)


def get_value(document: str, path: Sequence[str]) -> Any:
    """Decoded value at path; raises NotFoundError if absent."""
    loc = locate(document, path)
    return _decode(document[loc.start:loc.end])


def has_path(document: str, path: Sequence[str]) -> bool:
    try:
        locate(document, path)
    except NotFoundError:
        return False
    return True


# ============================================================================
# SET
# ============================================================================

def set_value(
    document: str,
    path: Sequence[str],
    value: Any,
    after: Sequence[str] = (),
    before: Sequence[str] = ()
) -> PatchOutcome:
    """
    Set the member at path to value.

    An existing member keeps its position, indentation and trailing comma;
    only the value text is replaced. A missing member is inserted on a new
    line after the first existing key in `after`, else before the first
    existing key in `before`, else after the last member of the parent.

    Raises:
        NotFoundError: If the parent object does not exist
        MalformedOutputError: If the result does not parse
    """
    if not path:
        raise ValueError("path must not be empty")
    newline = _newline(document)
    parent = locate_object(document, path[:-1])
    member = parent.get(path[-1])

    if member is not None:
        current = document[member.value_start:member.value_end]
        try:
            if _same_value(_decode(current), value):
                return PatchOutcome(document, False)
        except MalformedOutputError:
            pass
        indent = _indent_at(document, member.key_start)
        _, unit = detect_indent(document, parent)
        rendered = render_value(value, indent, unit, newline)
        new_text = document[:member.value_start] + rendered + document[member.value_end:]
        return _finish(document, new_text)

    return _finish(document, _insert_member(document, parent, path[-1], value, after, before))


def _insert_member(
    document: str,
    parent: ObjectSpan,
    key: str,
    value: Any,
    after: Sequence[str],
    before: Sequence[str]
) -> str:
    newline = _newline(document)
    member_indent, unit = detect_indent(document, parent)
    sep = _separator(document, parent)
    key_json = json.dumps(key, ensure_ascii=False)

    if not parent.members:
        inner = document[parent.open + 1:parent.close]
        if '\n' not in document:
            inline = f"{key_json}{sep}{json.dumps(value, ensure_ascii=False)}"
            return document[:parent.open + 1] + inline + document[parent.close:]
        line = f"{member_indent}{key_json}{sep}{render_value(value, member_indent, unit, newline)}"
        closing_indent = _indent_at(document, parent.open)
        if inner.strip(_WHITESPACE) == '':
            return document[:parent.open + 1] + newline + line + newline + closing_indent + document[parent.close:]
        return document[:parent.open + 1] + newline + line + document[parent.open + 1:]

    anchor = None
    mode = 'after'
    for name in after:
        anchor = parent.get(name)
        if anchor is not None:
            break
    if anchor is None:
        for name in before:
            anchor = parent.get(name)
            if anchor is not None:
                mode = 'before'
                break
    if anchor is None:
        anchor = parent.members[-1]

    if _owns_line(document, anchor.key_start):
        indent = _indent_at(document, anchor.key_start)
        line = f"{indent}{key_json}{sep}{render_value(value, indent, unit, newline)}"
        if mode == 'before':
            start = _line_start(document, anchor.key_start)
            return document[:start] + line + ',' + newline + document[start:]
        return _insert_line_after(document, anchor.value_end, line, newline)

    # single-line object
    if len(parent.members) > 1:
        first_comma = _comma_after(document, parent.members[0].value_end)
        spacing = document[first_comma + 1:parent.members[1].key_start]
    else:
        spacing = ' ' if document[parent.open + 1:parent.open + 2] == ' ' else ''
    inline = f"{key_json}{sep}{json.dumps(value, ensure_ascii=False)}"
    if mode == 'before':
        return document[:anchor.key_start] + inline + ',' + spacing + document[anchor.key_start:]
    comma = _comma_after(document, anchor.value_end)
    if comma is None:
        return document[:anchor.value_end] + ',' + spacing + inline + document[anchor.value_end:]
    return document[:comma + 1] + spacing + inline + ',' + document[comma + 1:]


# ============================================================================
# DELETE
# ============================================================================

def _cut_sibling(text: str, start: int, end: int, previous_end: Optional[int]) -> str:
    """
    Remove the object member or array item spanning start..end.

    A sibling on its own line is removed with its line break. When it had no
    trailing comma (it was the last one), the comma after the previous
    sibling is removed instead so no dangling comma is left behind.
    """
    comma = _comma_after(text, end)

    # comma of the previous sibling, removed when the last one goes away
    previous_comma = None
    if comma is None and previous_end is not None:
        previous_comma = _comma_after(text, previous_end)

    stop = comma + 1 if comma is not None else end
    n = len(text)

    if _owns_line(text, start):
        cut_end = stop
        while cut_end < n and text[cut_end] in ' \t':
            cut_end += 1
        if text.startswith('//', cut_end):
            cut_end = _line_end(text, cut_end)
        if text.startswith('\r\n', cut_end):
            cut_start = _line_start(text, start)
            cut_end += 2
        elif text.startswith('\n', cut_end):
            cut_start = _line_start(text, start)
            cut_end += 1
        elif cut_end >= n or text[cut_end] in '}]':
            cut_start = _line_start(text, start)
        else:
            # another sibling follows on the same line
            cut_start = start
    else:
        cut_start = start
        cut_end = stop
        if comma is not None:
            while cut_end < n and text[cut_end] in ' \t':
                cut_end += 1
        elif previous_comma is not None:
            # "a": 1, "b": 2 -> remove ', "b": 2'
            return text[:previous_comma] + text[end:]

    if previous_comma is not None:
        return text[:previous_comma] + text[previous_comma + 1:cut_start] + text[cut_end:]
    return text[:cut_start] + text[cut_end:]


def delete_key(document: str, path: Sequence[str]) -> PatchOutcome:
    """
    Remove the member at path.

    A member on its own line is removed with its line break, together with a
    comment trailing it on that line.

    Raises:
        NotFoundError: If the member does not exist
        MalformedOutputError: If the result does not parse
    """
    loc = locate(document, path)
    member = loc.member
    siblings = loc.parent.members
    index = siblings.index(member)
    previous_end = siblings[index - 1].value_end if index > 0 else None
    new_text = _cut_sibling(document, member.key_start, member.value_end, previous_end)
    return _finish(document, new_text)


# ============================================================================
# ARRAYS
# ============================================================================

def _locate_array(document: str, path: Sequence[str]) -> Tuple[Location, ArraySpan]:
    loc = locate(document, path)
    if document[loc.start] != '[':
        raise NotFoundError(f"'{_format_path(path)}' is not an array")
    return loc, _parse_array(document, loc.start)


def _rebuild_array(document: str, loc: Location, arr: ArraySpan, raw_items: List[str]) -> str:
    """Replace the array body, keeping the layout of the original array."""
    newline = _newline(document)
    original = document[arr.open:arr.close + 1]
    key_indent = _indent_at(document, loc.member.key_start)

    if not raw_items:
        body = ''
    elif '\n' in original or (not arr.items and '\n' in document):
        own = [_indent_at(document, it.start) for it in arr.items if _owns_line(document, it.start)]
        if own:
            item_indent = own[0]
        else:
            _, unit = detect_indent(document, loc.parent)
            item_indent = key_indent + unit
        if _owns_line(document, arr.close):
            closing_indent = _indent_at(document, arr.close)
        else:
            closing_indent = key_indent
        body = newline + (',' + newline).join(item_indent + raw for raw in raw_items) + newline + closing_indent
    else:
        sep = ', ' if re.search(r',[ \t]', original) or len(arr.items) < 2 else ','
        pad = ' ' if original.startswith('[ ') else ''
        body = pad + sep.join(raw_items) + pad

    return document[:arr.open] + '[' + body + ']' + document[arr.close + 1:]


def _has_comments(document: str, arr: ArraySpan) -> bool:
    """True when a comment sits between the items of arr."""
    gap_start = arr.open + 1
    for gap_end, next_start in [(it.start, it.end) for it in arr.items] + [(arr.close, None)]:
        gap = document[gap_start:gap_end]
        if '//' in gap or '/*' in gap:
            return True
        gap_start = next_start
    return False


def _insert_item(document: str, loc: Location, arr: ArraySpan, raw: str, index: Optional[int]) -> str:
    """Insert raw into arr without touching the text around the other items."""
    newline = _newline(document)
    if not arr.items:
        _, unit = detect_indent(document, loc.parent)
        indent = _indent_at(document, loc.member.key_start) + unit
        return document[:arr.open + 1] + newline + indent + raw + document[arr.open + 1:]

    if index is not None and index < len(arr.items):
        target = arr.items[index]
        if _owns_line(document, target.start):
            start = _line_start(document, target.start)
            return document[:start] + _indent_at(document, target.start) + raw + ',' + newline + document[start:]
        return document[:target.start] + raw + ', ' + document[target.start:]

    last = arr.items[-1]
    if _owns_line(document, last.start):
        return _insert_line_after(document, last.end, _indent_at(document, last.start) + raw, newline)
    comma = _comma_after(document, last.end)
    if comma is None:
        return document[:last.end] + ', ' + raw + document[last.end:]
    return document[:comma + 1] + ' ' + raw + ',' + document[comma + 1:]


def list_items(document: str, path: Sequence[str]) -> List[Any]:
    """Decoded items of the array at path."""
    _, arr = _locate_array(document, path)
    return [item.value for item in arr.items]


def append_unique(document: str, path: Sequence[str], item: Any, index: Optional[int] = None) -> PatchOutcome:
    """
    Add item to the array at path unless an equal item is already present.

    Comparison is exact and case-sensitive. Existing items are kept verbatim,
    including their escaping; the array is re-laid out using the indentation
    of its current items. An array holding comments is not re-laid out: the
    item is inserted next to its neighbours and the comments stay in place.

    Raises:
        NotFoundError: If path is missing or not an array
    """
    loc, arr = _locate_array(document, path)
    if any(_same_value(existing.value, item) for existing in arr.items):
        return PatchOutcome(document, False)

    raw = json.dumps(item, ensure_ascii=False)
    if _has_comments(document, arr):
        return _finish(document, _insert_item(document, loc, arr, raw, index))

    raw_items = [document[it.start:it.end] for it in arr.items]
    if index is None:
        raw_items.append(raw)
    else:
        raw_items.insert(index, raw)
    return _finish(document, _rebuild_array(document, loc, arr, raw_items))


def remove_matching(document: str, path: Sequence[str], predicate: Callable[[Any], bool]) -> PatchOutcome:
    """
    Remove every item of the array at path for which predicate is true.

    In an array holding comments each item is cut out on its own, taking only
    a comment trailing it on its line; the other comments stay.

    Raises:
        NotFoundError: If path is missing or not an array
    """
    loc, arr = _locate_array(document, path)
    kept = [it for it in arr.items if not predicate(it.value)]
    if len(kept) == len(arr.items):
        return PatchOutcome(document, False)
    for it in arr.items:
        if it not in kept:
            logger.info(f"ⓘ Removing {document[it.start:it.end]} from {_format_path(path)}")

    if _has_comments(document, arr):
        text = document
        # last first, so earlier offsets stay valid
        for index in reversed(range(len(arr.items))):
            it = arr.items[index]
            if it in kept:
                continue
            _, current = _locate_array(text, path)
            previous_end = current.items[index - 1].end if index > 0 else None
            text = _cut_sibling(text, current.items[index].start, current.items[index].end, previous_end)
        return _finish(document, text)

    raw_items = [document[it.start:it.end] for it in kept]
    return _finish(document, _rebuild_array(document, loc, arr, raw_items))


# ============================================================================
# DISPATCH AND FILE I/O
# ============================================================================

def apply_edit(request: EditRequest) -> PatchOutcome:
    """Apply one EditRequest."""
    op = request.operation
    if op is Operation.SET:
        return set_value(request.document, request.path, request.value, request.after, request.before)
    if op is Operation.DELETE:
        return delete_key(request.document, request.path)
    if op is Operation.APPEND_UNIQUE:
        return append_unique(request.document, request.path, request.value, request.index)
    if op is Operation.REMOVE_MATCHING:
        if request.predicate is None:
            raise ValueError("REMOVE_MATCHING requires a predicate")
        return remove_matching(request.document, request.path, request.predicate)
    raise ValueError(f"Unsupported operation: {op}")


def read_document(file_path: Union[str, Path]) -> str:
    with open(file_path, 'r', encoding='utf-8', newline='') as f:
        return f.read()


def write_document(file_path: Union[str, Path], text: str) -> None:
    with open(file_path, 'w', encoding='utf-8', newline='') as f:
        f.write(text)


def render_edits(
    file_path: Union[str, Path],
    *edits: Callable[[str], PatchOutcome],
    validate: Callable[[str], Any] = parse_document
) -> Optional[str]:
    """
    Apply edits to the text of a file in memory.

    Each edit is a callable taking the current text and returning a
    PatchOutcome. The file itself is never written.

    Args:
        file_path: File to read
        edits: Edit callables, applied in order
        validate: Parser the final text must pass

    Returns:
        The validated new text, or None if nothing changed
    """
    original = read_document(file_path)
    text = original
    for edit in edits:
        text = edit(text).text

    if text == original:
        return None

    try:
        validate(text)
    except MalformedOutputError:
        raise
    except Exception as e:
        raise MalformedOutputError(f"Refusing to write {file_path}: {e}")
    return text


def patch_file(
    file_path: Union[str, Path],
    *edits: Callable[[str], PatchOutcome],
    validate: Callable[[str], Any] = parse_document
) -> bool:
    """
    Apply edits to a file in order and write it once if anything changed.

    Any failure propagates before the file is touched.

    Returns:
        True if the file was written
    """
    text = render_edits(file_path, *edits, validate=validate)
    if text is None:
        return False
    write_document(file_path, text)
    logger.info(f"✓ Updated {file_path}")
    return True
