from datetime import datetime, timezone

import pytest

from rcs_reader.rcs_errors import STRAY_TOKEN, UNSUPPORTED_CONTENT, FormatError, UnknownRevision
from rcs_reader.rcs_parser import is_revision_id, parse, read_string, revision_key
from rcs_reader.revision_graph import RevisionGraph


def test_parse_basic_archive(simple_archive_text):
    archive = parse(simple_archive_text)

    assert archive.head == "1.2"
    assert archive.header['comment'] == "# "
    assert archive.header['locks'] == ""
    assert archive.description == "Sample file\n"
    assert len(archive) == 2
    assert archive.diagnostics == ()

    head = archive["1.2"]
    assert head.author == "bob"
    assert head.state == "Exp"
    assert head.predecessor == "1.1"
    assert head.log == "X replaces B\n"
    assert head.text == "A\nX\nC\n"

    root = archive["1.1"]
    assert root.predecessor is None
    assert root.text == "d2 1\na1 1\nB\n"

def test_unknown_revision_lookup(simple_archive_text):
    archive = parse(simple_archive_text)
    assert "1.5" not in archive
    with pytest.raises(UnknownRevision):
        archive["1.5"]

def test_archive_is_read_only(simple_archive_text):
    archive = parse(simple_archive_text)
    with pytest.raises(TypeError):
        archive.revisions["1.3"] = archive["1.2"]
    with pytest.raises(AttributeError):
        archive.head = "1.1"

def test_escaped_at_signs_are_unescaped(build_archive):
    text = build_archive([
        {'rev': '1.1', 'text': "mail me@example.com\n@@ literal\n", 'log': "@ in log"},
    ], desc="desc with @")
    archive = parse(text)

    assert archive["1.1"].text == "mail me@example.com\n@@ literal\n"
    assert archive["1.1"].log == "@ in log"
    assert archive.description == "desc with @"

def test_read_string():
    assert read_string("@@", 0) == ("", 2)
    assert read_string("@a@@b@ rest", 0) == ("a@b", 6)
    assert read_string("x @@@@;", 2) == ("@", 6)
    with pytest.raises(FormatError):
        read_string("@never closed", 0)
    with pytest.raises(FormatError):
        read_string("no marker", 0)

def test_missing_desc_is_format_error(simple_archive_text):
    broken = simple_archive_text.replace("desc\n@Sample file\n@\n", "")
    with pytest.raises(FormatError):
        parse(broken)

def test_unterminated_block_is_format_error(simple_archive_text):
    # Cut the archive inside the last text block
    broken = simple_archive_text[:simple_archive_text.rindex("a1 1")]
    with pytest.raises(FormatError):
        parse(broken)

def test_missing_head_is_format_error(simple_archive_text):
    with pytest.raises(FormatError):
        parse(simple_archive_text.replace("head\t1.2;", "head\t;"))
    with pytest.raises(FormatError):
        parse("")

def test_next_pointing_to_undefined_revision(build_archive):
    text = build_archive([
        {'rev': '1.2', 'text': "A\n", 'next': "1.1"},
    ])
    with pytest.raises(FormatError, match="undefined revision '1.1'"):
        parse(text)

def test_cycle_in_revision_chain(build_archive):
    text = build_archive([
        {'rev': '1.2', 'text': "A\n"},
        {'rev': '1.1', 'text': "", 'next': "1.2"},
    ])
    with pytest.raises(FormatError, match="loops"):
        parse(text)

def test_duplicate_metadata_block(simple_archive_text):
    duplicated = simple_archive_text.replace(
        "\ndesc\n", "1.1\ndate\t2024.01.01.00.00.00;\tauthor x;\tstate Exp;\nbranches;\nnext\t;\n\n\ndesc\n")
    with pytest.raises(FormatError, match="defined twice"):
        parse(duplicated)

def test_unknown_body_directive_is_kept(simple_archive_text):
    text = simple_archive_text.replace("\ntext\n@A\nX", "\ncommitid\n@abc123@\ntext\n@A\nX")
    archive = parse(text)

    assert archive["1.2"].extra['commitid'] == "abc123"
    assert archive["1.2"].text == "A\nX\nC\n"
    assert archive.diagnostics == ()

def test_stray_token_in_body_is_skipped(simple_archive_text, caplog):
    text = simple_archive_text.replace("1.2\nlog\n", "1.2\nbogus line\nlog\n")
    archive = parse(text)

    assert archive["1.2"].log == "X replaces B\n"
    assert [d.kind for d in archive.diagnostics] == [STRAY_TOKEN]
    assert "bogus line" in caplog.text

def test_binary_payload_is_flagged(build_archive):
    archive = parse(build_archive([{'rev': '1.1', 'text': "\x00\x01data\n"}], expand="b"))

    assert archive.is_binary
    assert archive["1.1"].text == "\x00\x01data\n"
    assert UNSUPPORTED_CONTENT in [d.kind for d in archive.diagnostics]

def test_metadata_extra_fields_and_branches(build_archive):
    text = build_archive([
        {'rev': '1.2', 'text': "A\n"},
        {'rev': '1.1', 'text': "d1 1\n", 'branches': "1.1.1.1", 'next': ""},
        {'rev': '1.1.1.1', 'text': "a1 1\nbranch\n", 'next': ""},
    ])
    archive = parse(text)

    assert archive["1.1"].branches == ("1.1.1.1",)
    assert archive["1.2"].branches == ()
    assert archive["1.1.1.1"].predecessor is None

TWO_BRANCH_ARCHIVE = (
    "head\t1.2;\naccess;\nsymbols;\nlocks; strict;\ncomment\t@# @;\n\n\n"
    "1.2\ndate\t2024.01.02.00.00.00;\tauthor bob;\tstate Exp;\nbranches;\nnext\t1.1;\n\n"
    "1.1\ndate\t2024.01.01.00.00.00;\tauthor alice;\tstate Exp;\n"
    "branches\n\t1.1.1.1\n\t1.1.2.1;\nnext\t;\n\n"
    "1.1.1.1\ndate\t2024.01.03.00.00.00;\tauthor dave;\tstate Exp;\nbranches;\nnext\t;\n\n"
    "1.1.2.1\ndate\t2024.01.04.00.00.00;\tauthor erin;\tstate Exp;\nbranches;\nnext\t;\n\n\n"
    "desc\n@@\n\n\n"
    "1.2\nlog\n@X replaces B\n@\ntext\n@A\nX\nC\n@\n\n\n"
    "1.1\nlog\n@Initial revision\n@\ntext\n@d2 1\na1 1\nB\n@\n\n\n"
    "1.1.1.1\nlog\n@first branch\n@\ntext\n@a3 1\nD\n@\n\n\n"
    "1.1.2.1\nlog\n@second branch\n@\ntext\n@d1 1\n@\n"
)

def test_branches_on_separate_lines():
    archive = parse(TWO_BRANCH_ARCHIVE)

    assert len(archive) == 4
    assert archive["1.1"].branches == ("1.1.1.1", "1.1.2.1")
    assert archive["1.1"].predecessor is None
    assert archive["1.1"].author == "alice"
    assert archive["1.2"].predecessor == "1.1"
    assert archive["1.2"].branches == ()
    assert archive["1.1.1.1"].author == "dave"
    assert archive["1.1.2.1"].text == "d1 1\n"
    assert archive.diagnostics == ()

    graph = RevisionGraph(archive)
    assert graph.chain_between("1.2") == ["1.1"]
    assert graph.root() == "1.1"
    assert not graph.is_on_trunk("1.1.2.1")

def test_branches_built_in_rcs_layout(build_archive):
    text = build_archive([
        {'rev': '1.2', 'text': "A\n"},
        {'rev': '1.1', 'text': "d1 1\n", 'branches': "1.1.1.1 1.1.2.1 1.1.3.1", 'next': ""},
        {'rev': '1.1.1.1', 'text': "a1 1\none\n", 'next': ""},
        {'rev': '1.1.2.1', 'text': "a1 1\ntwo\n", 'next': ""},
        {'rev': '1.1.3.1', 'text': "a1 1\nthree\n", 'next': ""},
    ])
    assert "branches\n\t1.1.1.1\n\t1.1.2.1\n\t1.1.3.1;" in text

    archive = parse(text)
    assert archive["1.1"].branches == ("1.1.1.1", "1.1.2.1", "1.1.3.1")
    assert RevisionGraph(archive).chain_between("1.2") == ["1.1"]

def test_indented_revision_id_does_not_start_a_block(simple_archive_text):
    # An indented id continues the clause above it
    text = simple_archive_text.replace("next\t1.1;\n", "next\n\t1.1\n;\n")
    archive = parse(text)

    assert archive["1.2"].predecessor == "1.1"
    assert len(archive) == 2

@pytest.mark.parametrize("field, value", [
    ("next", "abc"),
    ("next", "1."),
    ("branches", "1.1.1.1 bogus"),
])
def test_malformed_revision_reference(build_archive, field, value):
    text = build_archive([
        {'rev': '1.2', 'text': "A\n"},
        {'rev': '1.1', 'text': "d1 1\n"},
    ])
    if field == "next":
        text = text.replace("next\t1.1;", f"next\t{value};")
    else:
        text = text.replace("branches;\nnext\t;", f"branches {value};\nnext\t;")
    with pytest.raises(FormatError, match="malformed revision id"):
        parse(text)

def test_timestamp():
    text_new = "head 1.1;\n\n1.1\ndate 2014.03.09.12.30.05; author a; state Exp;\nnext ;\n\ndesc\n@@\n\n1.1\nlog\n@@\ntext\n@@\n"
    text_old = text_new.replace("2014.", "99.")

    assert parse(text_new)["1.1"].timestamp == datetime(2014, 3, 9, 12, 30, 5, tzinfo=timezone.utc)
    assert parse(text_old)["1.1"].timestamp.year == 1999

def test_revision_key_ordering():
    versions = ["1.9", "1.10", "1.2.2.1", "1.2.1.1", "1.2"]
    assert sorted(versions, key=revision_key) == ["1.2", "1.2.1.1", "1.2.2.1", "1.9", "1.10"]
    assert revision_key("1.10") > revision_key("1.9")
    assert revision_key("1.2.1.1") != revision_key("1.2.2.1")
    with pytest.raises(ValueError):
        revision_key("1.x")

def test_is_revision_id():
    assert is_revision_id("1.2")
    assert is_revision_id("1.2.1.4")
    assert not is_revision_id("1")
    assert not is_revision_id("1.")
    assert not is_revision_id("desc")
