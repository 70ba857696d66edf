from renderer import is_separator_row, render_chat_text, render_markdown, split_row
from schemas import Segment


def types(nodes):
    return [n.type for n in nodes]


def test_heading_spacer_and_bullets():
    nodes = render_markdown("# Title\n\n- **Bold** rest\n- plain")
    assert types(nodes) == ["heading", "spacer", "bullet", "bullet"]
    assert nodes[0].level == 1 and nodes[0].text == "Title"
    assert nodes[2].segments == [Segment(text="Bold", strong=True), Segment(text=" rest")]
    assert nodes[3].segments == [Segment(text="plain")]
    assert nodes[3].text == "plain"


def test_second_level_heading():
    nodes = render_markdown("## NVDA (Weight: 10%)")
    assert nodes[0].level == 2
    assert nodes[0].text == "NVDA (Weight: 10%)"


def test_table_extraction_drops_separator():
    nodes = render_markdown("| A | B |\n| --- | --- |\n| 1 | 2 |")
    assert types(nodes) == ["table"]
    assert nodes[0].header == ["A", "B"]
    assert nodes[0].rows == [["1", "2"]]


def test_table_with_alignment_row_then_text():
    text = "# Snapshot\n| Metric | Status |\n| :--- | :---: |\n| VIX | 14 |\n| Mood | Greed |\nAfter table"
    nodes = render_markdown(text)
    assert types(nodes) == ["heading", "table", "paragraph"]
    assert nodes[1].rows == [["VIX", "14"], ["Mood", "Greed"]]
    assert nodes[2].segments == [Segment(text="After table")]


def test_header_only_table_is_not_emitted():
    assert render_markdown("| A | B |\n|---|---|") == []


def test_indented_table_rows_are_collected():
    nodes = render_markdown("  | A |\n  | 1 |")
    assert nodes[0].header == ["A"] and nodes[0].rows == [["1"]]


def test_disclaimer_wins_over_emphasis():
    line = "No disclaimer here about risk and **Disclaimer** matters"
    nodes = render_markdown(line)
    assert types(nodes) == ["disclaimer"]
    assert nodes[0].text == line


def test_disclaimer_heading_is_still_a_heading():
    assert types(render_markdown("# Disclaimer")) == ["heading"]


def test_paragraph_emphasis_alternates():
    nodes = render_markdown("Shift **5%** from cash to **T-Bills** now")
    assert nodes[0].segments == [
        Segment(text="Shift "),
        Segment(text="5%", strong=True),
        Segment(text=" from cash to "),
        Segment(text="T-Bills", strong=True),
        Segment(text=" now"),
    ]


def test_every_line_maps_to_one_node():
    text = "intro\n\n## A\n- x\n- **Action:** Hold\n\nend"
    assert len(render_markdown(text)) == len(text.split("\n"))


def test_row_helpers():
    assert is_separator_row("| --- | :---: |")
    assert not is_separator_row("| - a | b |")
    assert split_row("| A | B |") == ["A", "B"]
    assert split_row("| A | | C |") == ["A", "", "C"]


def test_chat_variant():
    nodes = render_chat_text("Sure.\n\n- one\n* two\n# not a heading")
    assert types(nodes) == ["line", "spacer", "bullet", "bullet", "line"]
    assert nodes[2].text == "one" and nodes[3].text == "two"
    assert nodes[4].text == "# not a heading"
