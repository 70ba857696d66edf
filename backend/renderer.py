"""Line-oriented markdown to display-node conversion.

The model returns a fixed, shallow markdown layout (tables, two heading
levels, bold-led bullets, a disclaimer). Each input line maps to one node,
except that a run of ``|`` lines collapses into a single table node.
"""
import re
from typing import List, Optional

from schemas import (
    BulletNode,
    DisclaimerNode,
    DisplayNode,
    HeadingNode,
    LineNode,
    ParagraphNode,
    Segment,
    SpacerNode,
    TableNode,
)

_SEPARATOR_RE = re.compile(r"^[\s|:\-]*-[\s|:\-]*$")


def is_separator_row(row: str) -> bool:
    """``| --- | :---: |`` style rows: pipes, dashes, colons and spaces only."""
    return bool(_SEPARATOR_RE.match(row))


def split_row(row: str) -> List[str]:
    cells = [cell.strip() for cell in row.split("|")]
    if cells and cells[0] == "":
        cells = cells[1:]
    if cells and cells[-1] == "":
        cells = cells[:-1]
    return cells


def build_table(rows: List[str]) -> Optional[TableNode]:
    data_rows = [r for r in rows if not is_separator_row(r)]
    if len(data_rows) < 2:
        return None
    return TableNode(header=split_row(data_rows[0]), rows=[split_row(r) for r in data_rows[1:]])


def emphasis_segments(text: str) -> List[Segment]:
    """Split on ``**``; odd-numbered parts are emphasized. Empty parts are dropped."""
    return [
        Segment(text=part, strong=idx % 2 == 1)
        for idx, part in enumerate(text.split("**"))
        if part
    ]


def _bold_bullet(trimmed: str) -> BulletNode:
    parts = trimmed[2:].split("**")
    segments = [Segment(text=parts[1], strong=True)] if len(parts) > 1 and parts[1] else []
    rest = "**".join(parts[2:])
    if rest:
        segments.append(Segment(text=rest))
    return BulletNode(segments=segments)


class _TableBuffer:
    def __init__(self, out: List[DisplayNode]):
        self.out = out
        self.rows: List[str] = []

    def add(self, row: str) -> None:
        self.rows.append(row)

    def flush(self) -> None:
        if not self.rows:
            return
        table = build_table(self.rows)
        if table is not None:
            self.out.append(table)
        self.rows = []


def classify_line(line: str) -> DisplayNode:
    """Map one non-table line to its node. First matching rule wins."""
    trimmed = line.strip()
    if line.startswith("# "):
        return HeadingNode(level=1, text=line[2:])
    if line.startswith("## "):
        return HeadingNode(level=2, text=line[3:])
    if trimmed.startswith("- **"):
        return _bold_bullet(trimmed)
    if trimmed.startswith("- "):
        return BulletNode(segments=[Segment(text=trimmed[2:])])
    if "disclaimer" in line.lower():
        return DisclaimerNode(text=line)
    if trimmed == "":
        return SpacerNode()
    return ParagraphNode(segments=emphasis_segments(line))


def render_markdown(text: str) -> List[DisplayNode]:
    nodes: List[DisplayNode] = []
    table = _TableBuffer(nodes)
    for line in text.split("\n"):
        trimmed = line.strip()
        if trimmed.startswith("|"):
            table.add(trimmed)
            continue
        table.flush()
        nodes.append(classify_line(line))
    table.flush()
    return nodes


def render_chat_text(text: str) -> List[DisplayNode]:
    """Lighter variant for chat bubbles: spacers, bullets and plain lines only."""
    nodes: List[DisplayNode] = []
    for line in text.split("\n"):
        if not line:
            nodes.append(SpacerNode())
        elif line.startswith("- ") or line.startswith("* "):
            nodes.append(BulletNode(segments=[Segment(text=line[2:])]))
        else:
            nodes.append(LineNode(text=line))
    return nodes
