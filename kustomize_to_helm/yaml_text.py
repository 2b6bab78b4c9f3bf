"""
YAML text utilities

Serialization of resources plus helpers for locating keys and blocks in
serialized YAML. The templater and the value injector edit text, not trees,
so these helpers work on lists of lines and understand the guard lines
('{{- if ... }}', '{{- end }}') that earlier passes may have inserted.
"""
import re
from typing import Any, List, Optional, Tuple

import yaml


class CustomDumper(yaml.SafeDumper):
    """Custom YAML dumper that represents multiline strings as literal block scalars"""
    pass


def str_representer(dumper, data):
    """Represent strings, using literal block scalar for multiline strings"""
    if '\n' in data:
        return dumper.represent_scalar('tag:yaml.org,2002:str', data, style='|')
    # Use double quotes for strings that look like numbers or booleans
    # to match kustomize output style
    if data in ('True', 'False', 'true', 'false', 'yes', 'no', 'on', 'off'):
        return dumper.represent_scalar('tag:yaml.org,2002:str', data, style='"')
    try:
        float(data)
        return dumper.represent_scalar('tag:yaml.org,2002:str', data, style='"')
    except ValueError:
        pass
    return dumper.represent_scalar('tag:yaml.org,2002:str', data)


CustomDumper.add_representer(str, str_representer)


def dump_yaml(obj: Any) -> str:
    """Serialize an object the way kustomize lays out resources"""
    try:
        return yaml.dump(obj, Dumper=CustomDumper, default_flow_style=False,
                         sort_keys=False, width=float('inf'))
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to convert object to YAML: {e}")


def indent_text(text: str, indent: int) -> str:
    """Indent every non-empty line of text"""
    pad = ' ' * indent
    return '\n'.join(pad + line if line else '' for line in text.split('\n'))


# ============================================================================
# Line-level navigation
# ============================================================================

_KEY_RE = re.compile(r'^(?P<indent> *)(?P<dash>- )?(?P<key>[^\s#:{}\[\]\'"\-|>][^:]*?|"[^"]*"|\'[^\']*\'):(?:\s|$)')
_GUARD_RE = re.compile(r'^\{\{-?\s*(?P<word>if|with|range|else|end)\b')


def indent_of(line: str) -> int:
    return len(line) - len(line.lstrip(' '))


def is_blank(line: str) -> bool:
    return not line.strip()


def is_template_line(line: str) -> bool:
    return line.lstrip().startswith('{{')


def guard_kind(line: str) -> Optional[str]:
    """'open', 'else' or 'end' for guard lines, None otherwise"""
    match = _GUARD_RE.match(line.strip())
    if not match:
        return None
    word = match.group('word')
    if word in ('if', 'with', 'range'):
        return 'open'
    return word


def parse_key(line: str) -> Optional[Tuple[int, str, bool]]:
    """Return (key column, key, is list item) for a 'key:' line"""
    match = _KEY_RE.match(line)
    if not match:
        return None
    col = len(match.group('indent'))
    dash = bool(match.group('dash'))
    if dash:
        col += 2
    key = match.group('key')
    if key[:1] in ('"', "'"):
        key = key[1:-1]
    return col, key, dash


def key_col(line: str) -> int:
    parsed = parse_key(line)
    if parsed:
        return parsed[0]
    stripped = line.lstrip(' ')
    if stripped.startswith('- '):
        return indent_of(line) + 2
    return indent_of(line)


def find_key(lines: List[str], key: str, col: int, start: int = 0, end: Optional[int] = None) -> int:
    """Index of the first line holding `key` at column `col`, or -1"""
    end = len(lines) if end is None else end
    for i in range(start, end):
        parsed = parse_key(lines[i])
        if parsed and parsed[0] == col and parsed[1] == key:
            return i
    return -1


def block_end(lines: List[str], idx: int) -> int:
    """Exclusive end of the block owned by the key on line idx

    Children are lines indented deeper than the key, plus '- ' items at the
    key's own column. Guard lines belong to the block only when they open
    and close within it.
    """
    col = key_col(lines[idx])
    end = idx + 1
    openers: List[int] = []
    for i in range(idx + 1, len(lines)):
        line = lines[i]
        if is_blank(line):
            continue
        ind = indent_of(line)
        kind = guard_kind(line) if is_template_line(line) else None
        if kind == 'open':
            if ind < col:
                break
            openers.append(i)
        elif kind == 'else':
            if not openers:
                break
        elif kind == 'end':
            if not openers:
                break
            openers.pop()
            end = i + 1
        elif ind > col or (ind == col and line.lstrip(' ').startswith('- ')) or \
                (openers and is_template_line(line)):
            end = i + 1
        else:
            break
    if openers:
        end = min(end, openers[0])
    return end


def find_path(lines: List[str], path: List[str], start: int = 0, end: Optional[int] = None, col: int = 0) -> int:
    """Walk nested mapping keys from column `col`; index of the last key or -1"""
    end = len(lines) if end is None else end
    idx = -1
    for key in path:
        idx = find_key(lines, key, col, start, end)
        if idx < 0:
            return -1
        start, end = idx + 1, block_end(lines, idx)
        col += 2
    return idx


def parent_key(lines: List[str], idx: int) -> int:
    """Index of the key that owns the key on line idx, or -1 at the top level"""
    col = key_col(lines[idx])
    for i in range(idx - 1, -1, -1):
        parsed = parse_key(lines[i])
        if parsed and parsed[0] < col:
            return i
    return -1


def list_items(lines: List[str], idx: int) -> List[Tuple[int, int]]:
    """(start, end) line ranges of the '- ' items under the key on line idx"""
    col = key_col(lines[idx])
    end = block_end(lines, idx)
    items = []
    i = idx + 1
    while i < end:
        line = lines[i]
        if indent_of(line) == col and line.lstrip(' ').startswith('- '):
            j = i + 1
            while j < end and (is_blank(lines[j]) or indent_of(lines[j]) > col):
                j += 1
            while j > i + 1 and is_blank(lines[j - 1]):
                j -= 1
            items.append((i, j))
            i = j
        else:
            i += 1
    return items


def replace_value(line: str, value: str) -> str:
    """Keep the 'key:' part of a line and give it a new scalar value"""
    match = _KEY_RE.match(line)
    if not match:
        return line
    return line[:match.end()].rstrip() + ' ' + value


def wrap_lines(lines: List[str], start: int, end: int, condition: str, indent: int) -> List[str]:
    """Surround lines[start:end] with an if-guard at the given indent"""
    pad = ' ' * indent
    return lines[:start] + [f'{pad}{{{{- if {condition} }}}}'] + lines[start:end] + \
        [f'{pad}{{{{- end }}}}'] + lines[end:]


def split_lines(text: str) -> Tuple[List[str], bool]:
    trailing_newline = text.endswith('\n')
    if trailing_newline:
        text = text[:-1]
    return text.split('\n'), trailing_newline


def join_lines(lines: List[str], trailing_newline: bool = True) -> str:
    text = '\n'.join(lines)
    return text + '\n' if trailing_newline else text
