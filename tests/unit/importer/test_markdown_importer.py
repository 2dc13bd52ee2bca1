"""Unit tests for importer/markdown.py"""

from gardenexport.importer.markdown import extract_title, parse_markdown


def _blocks(text: str) -> list:
    return parse_markdown(text).tree["content"]


def _codes(result) -> list[str]:
    return [w.code for w in result.warnings]


# --- blocks ---

def test_heading_and_paragraph_with_marks():
    assert _blocks("# Title\n\nHello **bold** world") == [
        {"type": "heading", "attrs": {"level": 1}, "content": [{"type": "text", "text": "Title"}]},
        {"type": "paragraph", "content": [
            {"type": "text", "text": "Hello "},
            {"type": "text", "text": "bold", "marks": [{"type": "bold"}]},
            {"type": "text", "text": " world"},
        ]},
    ]


def test_nested_marks_innermost_first():
    paragraph = _blocks("***x***")[0]
    assert paragraph["content"] == [{"type": "text", "text": "x", "marks": [{"type": "bold"}, {"type": "italic"}]}]


def test_link_image_and_inline_code():
    paragraph = _blocks("[site](https://a.example) ![pic](img.png) `#nottag`")[0]
    assert paragraph["content"][0] == {
        "type": "text", "text": "site", "marks": [{"type": "link", "attrs": {"href": "https://a.example"}}],
    }
    assert paragraph["content"][2] == {
        "type": "text", "text": "pic", "marks": [{"type": "link", "attrs": {"href": "img.png"}}],
    }
    assert paragraph["content"][-1] == {"type": "text", "text": "#nottag", "marks": [{"type": "code"}]}


def test_strikethrough():
    assert _blocks("~~gone~~")[0]["content"] == [{"type": "text", "text": "gone", "marks": [{"type": "strike"}]}]


def test_hard_break_and_rule():
    blocks = _blocks("a  \nb\n\n---\n\nc")
    assert blocks[0]["content"] == [{"type": "text", "text": "a"}, {"type": "hardBreak"}, {"type": "text", "text": "b"}]
    assert blocks[1] == {"type": "horizontalRule"}
    assert blocks[2]["type"] == "paragraph"


def test_ordered_list_start_and_nesting():
    blocks = _blocks("3. a\n4. b\n   - inner")
    ordered = blocks[0]
    assert ordered["type"] == "orderedList"
    assert ordered["attrs"] == {"start": 3}
    second = ordered["content"][1]
    assert second["type"] == "listItem"
    assert [c["type"] for c in second["content"]] == ["paragraph", "bulletList"]


def test_task_list():
    task_list = _blocks("- [ ] todo\n- [x] done")[0]
    assert task_list["type"] == "taskList"
    assert [item["attrs"]["checked"] for item in task_list["content"]] == [False, True]
    assert task_list["content"][0]["content"][0]["content"] == [{"type": "text", "text": "todo"}]


def test_mixed_list_stays_bullet_list():
    assert _blocks("- [ ] todo\n- plain")[0]["type"] == "bulletList"


def test_code_fence():
    assert _blocks("```python\nprint('hi')\n```") == [
        {"type": "codeBlock", "attrs": {"language": "python"}, "content": [{"type": "text", "text": "print('hi')"}]},
    ]


def test_empty_code_fence_has_no_content():
    assert _blocks("```\n```") == [{"type": "codeBlock", "attrs": {"language": ""}}]


def test_unclosed_code_fence_warns():
    result = parse_markdown("```js\nlet a = 1")
    assert result.tree["content"][0]["attrs"]["language"] == "js"
    assert "UNCLOSED_CODE_BLOCK" in _codes(result)


def test_table():
    table = _blocks("| A | B |\n| --- | --- |\n| 1 | 2 |")[0]
    assert table["type"] == "table"
    header, row = table["content"]
    assert [c["type"] for c in header["content"]] == ["tableHeader", "tableHeader"]
    assert row["content"][1] == {
        "type": "tableCell", "attrs": {"colspan": 1, "rowspan": 1},
        "content": [{"type": "paragraph", "content": [{"type": "text", "text": "2"}]}],
    }


def test_blockquote():
    assert _blocks("> quoted")[0] == {
        "type": "blockquote", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "quoted"}]}],
    }


# --- callouts ---

def test_callout_with_title_and_body():
    assert _blocks("> [!warning] Careful\n> Mind the gap.")[0] == {
        "type": "callout",
        "attrs": {"type": "warning", "title": "Careful"},
        "content": [{"type": "paragraph", "content": [{"type": "text", "text": "Mind the gap."}]}],
    }


def test_callout_header_only_paragraph_is_dropped():
    callout = _blocks("> [!TIP]\n>\n> Body")[0]
    assert callout["attrs"] == {"type": "tip", "title": None}
    assert callout["content"] == [{"type": "paragraph", "content": [{"type": "text", "text": "Body"}]}]


def test_unknown_callout_type_is_blockquote():
    assert _blocks("> [!quote] Hi")[0]["type"] == "blockquote"


# --- wiki links and tags ---

def test_wiki_links_and_tags():
    paragraph = _blocks("See [[Other Note|other]] and #work")[0]
    assert paragraph["content"] == [
        {"type": "text", "text": "See "},
        {"type": "wikiLink", "attrs": {"targetTitle": "Other Note", "displayText": "other"}},
        {"type": "text", "text": " and "},
        {"type": "tag", "attrs": {"tagId": "", "tagName": "work", "slug": "work", "color": None}},
    ]


def test_hash_inside_word_is_not_a_tag():
    paragraph = _blocks("issue a#1 and c#sharp")[0]
    assert all(node["type"] == "text" for node in paragraph["content"])


def test_semantic_comments_restore_ids():
    paragraph = _blocks(
        "See <!-- wikilink:n2 -->[[Other]]<!-- /wikilink --> "
        "and <!-- tag:t1:#ff0000 -->#Work<!-- /tag -->"
    )[0]
    wiki = paragraph["content"][1]
    tag = paragraph["content"][3]
    assert wiki == {"type": "wikiLink", "attrs": {"targetTitle": "Other", "displayText": None, "contentId": "n2"}}
    assert tag == {"type": "tag", "attrs": {"tagId": "t1", "tagName": "Work", "slug": "work", "color": "#ff0000"}}


def test_semantic_comment_at_line_start():
    paragraph = _blocks("<!-- wikilink:n2 -->[[Other]]<!-- /wikilink --> rest")[0]
    assert paragraph["type"] == "paragraph"
    assert paragraph["content"][0]["attrs"]["contentId"] == "n2"
    assert paragraph["content"][1] == {"type": "text", "text": " rest"}


def test_raw_html_block_is_kept_as_text():
    result = parse_markdown("<div>hi</div>")
    assert result.tree["content"] == [{"type": "paragraph", "content": [{"type": "text", "text": "<div>hi</div>"}]}]
    assert _codes(result) == ["RAW_HTML"]


# --- front matter ---

def test_front_matter_extracted():
    result = parse_markdown("---\ntitle: Hi\ntags: [a, b]\n---\n# Body")
    assert result.frontmatter == {"title": "Hi", "tags": ["a", "b"]}
    assert result.tree["content"][0]["type"] == "heading"
    assert result.warnings == []


def test_unclosed_front_matter_warns():
    assert "UNCLOSED_FRONTMATTER" in _codes(parse_markdown("---\ntitle: x\n"))


def test_invalid_front_matter_warns():
    result = parse_markdown("---\nkey: [oops\n---\nbody")
    assert result.frontmatter == {}
    assert "INVALID_FRONTMATTER" in _codes(result)
    assert result.tree["content"][0]["content"] == [{"type": "text", "text": "body"}]


def test_non_mapping_front_matter_warns():
    assert "INVALID_FRONTMATTER" in _codes(parse_markdown("---\n- a\n---\nbody"))


# --- stats and titles ---

def test_stats():
    stats = parse_markdown("# T\n\n[[A]] [[B]] #x1\n\n> [!note]\n> hi").stats
    assert stats == {"blocks": 3, "wikiLinks": 2, "tags": 1, "callouts": 1}


def test_extract_title():
    assert extract_title(parse_markdown("## Sub\n\n# Main").tree) == "Main"
    assert extract_title(parse_markdown("First line here").tree) == "First line here"
    assert extract_title(parse_markdown("x" * 150).tree) == "x" * 100
    assert extract_title({"type": "doc", "content": []}) is None
