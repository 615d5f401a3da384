"""Block parser for the note markdown dialect.

Only a handful of block kinds are recognised; everything else is a
single-line paragraph with its text HTML-escaped.

Supported blocks (outside a code fence)
---------------------------------------
- ``:::toggle[open] Summary`` ... ``:::``  -- collapsible toggle block;
  toggles nest and their content is parsed recursively
- ``- [ ] task`` / ``- [x] done``          -- task list; two spaces (or one
  tab) of indentation per nesting level

A line starting with three backticks flips the code-fence state.  The
fence lines and everything between them are rendered as plain paragraphs;
the fence only suspends toggle/task recognition.

The same line classification drives :func:`markdown_to_plain_text` (search
and preview text) and :func:`derive_title`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from mdnotes.text import escape_html, normalize_newlines

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

# ":::toggle[open] Optional summary" (matched against the stripped line)
TOGGLE_START_RE = re.compile(r"^:::toggle\[(open|closed)\](?:\s+(.*))?$", re.IGNORECASE)
# Task item with its raw indentation: "  - [x] text"
_TASK_ITEM_RE = re.compile(r"^(\s*)-\s+\[([ xX])\]\s*(.*)$")
# Task marker stripped for plain text, keeping the indentation
_PLAIN_TASK_RE = re.compile(r"^(\s*)- \[[ xX]\]\s*")
# Title prefixes
_HEADING_PREFIX_RE = re.compile(r"^#{1,3}\s+")
_TASK_PREFIX_RE = re.compile(r"^- \[[ xX]\]\s*")
_TOGGLE_END_RE = re.compile(r"^:::\s*$")

TOGGLE_END = ":::"
CODE_FENCE = "```"

#: Title used when a note has nothing to derive one from ("no title")
NO_TITLE = "제목 없음"
#: Summary shown for a toggle block without one
TOGGLE_PLACEHOLDER = "Toggle"

_EMPTY_PARAGRAPH = "<p><br></p>"


# ---------------------------------------------------------------------------
# Task tree
# ---------------------------------------------------------------------------


@dataclass
class TaskNode:
    """One task item; children are indices into the flat node list."""

    checked: bool
    text: str
    children: list[int] = field(default_factory=list)


def build_task_tree(flat_tasks: list[tuple[int, bool, str]]) -> tuple[list[TaskNode], list[int]]:
    """Build a task tree from ``(depth, checked, text)`` rows.

    Returns ``(nodes, root_indices)``.  A depth that skips levels is clamped
    to one below the deepest open ancestor, so ``[0, 2]`` nests the second
    item under the first instead of detaching it.
    """
    nodes: list[TaskNode] = []
    roots: list[int] = []
    stack: list[int] = []

    for depth, checked, text in flat_tasks:
        del stack[min(depth, len(stack)):]

        idx = len(nodes)
        nodes.append(TaskNode(checked, text))
        if stack:
            nodes[stack[-1]].children.append(idx)
        else:
            roots.append(idx)
        stack.append(idx)

    return nodes, roots


def render_task_tree(nodes: list[TaskNode], indices: list[int]) -> str:
    items: list[str] = []
    for idx in indices:
        node = nodes[idx]
        checked_attr = ' checked="checked"' if node.checked else ""
        text = escape_html(node.text) or "<br>"
        nested = render_task_tree(nodes, node.children) if node.children else ""
        items.append(
            f'<li data-type="taskItem" data-checked="{"true" if node.checked else "false"}">'
            f'<label><input type="checkbox"{checked_attr}><span></span></label>'
            f"<div><p>{text}</p>{nested}</div></li>"
        )
    return f'<ul data-type="taskList">{"".join(items)}</ul>'


def _parse_task_line(line: str) -> tuple[int, bool, str] | None:
    m = _TASK_ITEM_RE.match(line)
    if not m:
        return None
    depth = len(m.group(1).replace("\t", "  ")) // 2
    return depth, m.group(2).lower() == "x", m.group(3)


# ---------------------------------------------------------------------------
# Toggle blocks
# ---------------------------------------------------------------------------


def find_toggle_end(lines: list[str], start: int) -> int | None:
    """Return the index of the ``:::`` line closing the toggle at *start*.

    Every opener met on the way (including the one at *start*) deepens the
    nesting; the block ends where the depth returns to zero.  ``None`` when
    the block is never closed.
    """
    depth = 0
    for i in range(start, len(lines)):
        stripped = lines[i].strip()
        if TOGGLE_START_RE.match(stripped):
            depth += 1
            continue
        if stripped == TOGGLE_END:
            depth -= 1
            if depth == 0:
                return i
    return None


def _render_toggle(match: re.Match[str], inner_lines: list[str]) -> str:
    is_open = match.group(1).lower() == "open"
    summary = escape_html((match.group(2) or "").strip()) or TOGGLE_PLACEHOLDER
    inner_html = render_lines(inner_lines) or _EMPTY_PARAGRAPH
    open_attr = ' open="open"' if is_open else ""
    return (
        f'<details data-type="toggleBlock"{open_attr}><summary>{summary}</summary>'
        f'<div data-type="toggleContent">{inner_html}</div></details>'
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_lines(lines: list[str]) -> str:
    """Render already-split, LF-normalised *lines* to markup."""
    html: list[str] = []
    in_code_fence = False
    i = 0

    while i < len(lines):
        line = lines[i]
        stripped = line.strip()

        if stripped.startswith(CODE_FENCE):
            in_code_fence = not in_code_fence
            html.append(f"<p>{escape_html(line)}</p>")
            i += 1
            continue

        if not in_code_fence:
            toggle = TOGGLE_START_RE.match(stripped)
            if toggle:
                end = find_toggle_end(lines, i)
                if end is not None:
                    html.append(_render_toggle(toggle, lines[i + 1 : end]))
                    i = end + 1
                    continue

            if _TASK_ITEM_RE.match(line):
                flat_tasks: list[tuple[int, bool, str]] = []
                while i < len(lines) and lines[i].strip():
                    task = _parse_task_line(lines[i])
                    if task is None:
                        break
                    flat_tasks.append(task)
                    i += 1
                nodes, roots = build_task_tree(flat_tasks)
                html.append(render_task_tree(nodes, roots))
                continue

        html.append(f"<p>{escape_html(line)}</p>" if stripped else _EMPTY_PARAGRAPH)
        i += 1

    return "".join(html)


def markdown_to_html(markdown: str) -> str:
    """Render a whole note to markup; a blank note becomes ``<p></p>``."""
    normalized = normalize_newlines(markdown)
    if not normalized.strip():
        return "<p></p>"
    return render_lines(normalized.split("\n"))


# ---------------------------------------------------------------------------
# Reductions
# ---------------------------------------------------------------------------


def markdown_to_plain_text(markdown: str) -> str:
    """Strip block markers, keeping the text (unescaped) for search/preview."""
    out: list[str] = []
    for line in normalize_newlines(markdown).split("\n"):
        stripped = line.strip()
        toggle = TOGGLE_START_RE.match(stripped)
        if toggle:
            out.append((toggle.group(2) or "").strip())
        elif stripped == TOGGLE_END:
            out.append("")
        else:
            out.append(_PLAIN_TASK_RE.sub(r"\1", line, count=1))
    return "\n".join(out).rstrip()


def derive_title(markdown: str) -> str:
    """Title from the first non-blank line, minus heading/task/toggle markers."""
    first_line = next(
        (s for s in (line.strip() for line in normalize_newlines(markdown).split("\n")) if s),
        None,
    )
    if first_line is None:
        return NO_TITLE

    toggle = TOGGLE_START_RE.match(first_line)
    if toggle:
        return (toggle.group(2) or "").strip() or NO_TITLE

    stripped = _HEADING_PREFIX_RE.sub("", first_line, count=1)
    stripped = _TASK_PREFIX_RE.sub("", stripped, count=1)
    stripped = _TOGGLE_END_RE.sub("", stripped, count=1)
    return stripped or NO_TITLE
