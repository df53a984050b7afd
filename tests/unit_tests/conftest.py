import pytest


def _escape(text: str) -> str:
    return text.replace("@", "@@")

def make_archive(revisions: list[dict], desc: str = "", expand: str | None = None) -> str:
    """
    Builds RCS archive text. `revisions` is newest first; each dict has
    'rev' and 'text' and optionally 'author', 'date', 'log', 'next', 'branches'
    (space separated ids).
    `next` defaults to the following entry of the list.
    """
    header = [f"head\t{revisions[0]['rev']};", "access;", "symbols;", "locks; strict;", "comment\t@# @;"]
    if expand:
        header.append(f"expand\t@{expand}@;")
    out = "\n".join(header) + "\n\n\n"

    for i, r in enumerate(revisions):
        default_next = revisions[i + 1]['rev'] if i + 1 < len(revisions) else ""
        nxt = r.get('next', default_next)
        # RCS puts every branch on its own tab-indented line
        branches = "".join(f"\n\t{b}" for b in r.get('branches', "").split())
        out += (
            f"{r['rev']}\n"
            f"date\t{r.get('date', '2024.01.0' + str(i + 1) + '.00.00.00')};\t"
            f"author {r.get('author', 'tester')};\tstate Exp;\n"
            f"branches{branches};\n"
            f"next\t{nxt};\n\n"
        )

    out += f"\ndesc\n@{_escape(desc)}@\n"

    for r in revisions:
        out += f"\n\n{r['rev']}\nlog\n@{_escape(r.get('log', ''))}@\ntext\n@{_escape(r['text'])}@\n"
    return out

@pytest.fixture
def build_archive():
    return make_archive

@pytest.fixture
def simple_archive_text():
    # 1.2 is "A X C"; its predecessor 1.1 is "A B C"
    return make_archive([
        {'rev': '1.2', 'text': "A\nX\nC\n", 'author': 'bob', 'log': "X replaces B\n"},
        {'rev': '1.1', 'text': "d2 1\na1 1\nB\n", 'author': 'alice', 'log': "Initial revision\n"},
    ], desc="Sample file\n")

@pytest.fixture
def three_revision_text():
    # 1.1: one two three
    # 1.2: one two three four
    # 1.3: zero one 2 three four
    return make_archive([
        {'rev': '1.3', 'text': "zero\none\n2\nthree\nfour\n", 'author': 'carol', 'log': "zero and 2\n"},
        {'rev': '1.2', 'text': "d1 1\nd3 1\na3 1\ntwo\n", 'author': 'bob', 'log': "add four\n"},
        {'rev': '1.1', 'text': "d4 1\n", 'author': 'alice', 'log': "Initial revision\n"},
    ])
