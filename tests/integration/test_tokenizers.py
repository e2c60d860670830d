"""Integration tests for FTS5 tokenizers."""

from __future__ import annotations

import re
from typing import Iterator

import pytest

from sqlite_bridge import Connection, GenericError, Token, TokenFlags, TokenizeFlags
from sqlite_bridge.adapters.outbound.context import get_arena

pytestmark = [pytest.mark.integration, pytest.mark.fts5]


@pytest.fixture
def fts(connection: Connection) -> Connection:
    """Provide a connection, skipping when the engine lacks FTS5."""
    try:
        connection.execute("CREATE VIRTUAL TABLE temp.probe USING fts5(x)")
    except GenericError:
        pytest.skip("engine built without FTS5")
    connection.execute("DROP TABLE temp.probe")
    return connection


def whitespace(arguments: list[str]):
    """A tokenizer splitting on whitespace, lowercasing unless told otherwise."""
    keep_case = "keepcase" in arguments

    def tokenize(flags: TokenizeFlags, text: str) -> Iterator[Token]:
        for match in re.finditer(r"\S+", text):
            token = match.group() if keep_case else match.group().lower()
            yield Token(TokenFlags.NONE, token, range(match.start(), match.end()))

    return tokenize


class TestTokenizers:
    """Tests for register_tokenizer()."""

    def test_match(self, fts: Connection) -> None:
        fts.register_tokenizer("ws", whitespace)
        fts.execute("CREATE VIRTUAL TABLE docs USING fts5(body, tokenize = 'ws')")
        fts.execute("INSERT INTO docs (body) VALUES ('the cat sat'), ('a Dog ran'), ('héllo wörld cat')")

        rows = fts.execute("SELECT rowid FROM docs WHERE docs MATCH 'cat' ORDER BY rowid")
        assert [row.as_integer for row in rows] == [1, 3]
        rows = fts.execute("SELECT rowid FROM docs WHERE docs MATCH 'dog'")
        assert [row.as_integer for row in rows] == [2]

    def test_highlight_uses_byte_offsets(self, fts: Connection) -> None:
        """Test that spans after multi-byte characters land on the right bytes."""
        fts.register_tokenizer("ws", whitespace)
        fts.execute("CREATE VIRTUAL TABLE docs USING fts5(body, tokenize = 'ws')")
        fts.execute("INSERT INTO docs (body) VALUES ('the cat sat'), ('héllo wörld cat')")

        rows = fts.execute(
            "SELECT highlight(docs, 0, '[', ']') FROM docs WHERE docs MATCH 'cat' ORDER BY rowid"
        )
        assert [row.as_text for row in rows] == ["the [cat] sat", "héllo wörld [cat]"]

        rows = fts.execute("SELECT highlight(docs, 0, '[', ']') FROM docs WHERE docs MATCH 'wörld'")
        assert rows[0].as_text == "héllo [wörld] cat"

    def test_factory_receives_arguments(self, fts: Connection) -> None:
        received = []

        def factory(arguments: list[str]):
            received.append(arguments)
            return whitespace(arguments)

        fts.register_tokenizer("ws", factory)
        fts.execute("CREATE VIRTUAL TABLE docs USING fts5(body, tokenize = 'ws keepcase')")
        fts.execute("INSERT INTO docs (body) VALUES ('Cat')")

        assert ["keepcase"] in received
        assert fts.execute("SELECT count(*) FROM docs WHERE docs MATCH 'Cat'")[0].as_integer == 1

    def test_flags_reported(self, fts: Connection) -> None:
        seen = set()

        def factory(arguments: list[str]):
            inner = whitespace(arguments)

            def tokenize(flags: TokenizeFlags, text: str) -> Iterator[Token]:
                seen.add(flags & (TokenizeFlags.DOCUMENT | TokenizeFlags.QUERY))
                return inner(flags, text)

            return tokenize

        fts.register_tokenizer("ws", factory)
        fts.execute("CREATE VIRTUAL TABLE docs USING fts5(body, tokenize = 'ws')")
        fts.execute("INSERT INTO docs (body) VALUES ('one two')")
        fts.execute("SELECT * FROM docs WHERE docs MATCH 'two'")

        assert TokenizeFlags.DOCUMENT in seen
        assert TokenizeFlags.QUERY in seen

    def test_tokenizer_failure(self, fts: Connection) -> None:
        def factory(arguments: list[str]):
            def tokenize(flags: TokenizeFlags, text: str) -> Iterator[Token]:
                raise RuntimeError("cannot tokenize")

            return tokenize

        fts.register_tokenizer("broken", factory)
        fts.execute("CREATE VIRTUAL TABLE docs USING fts5(body, tokenize = 'broken')")
        with pytest.raises(GenericError):
            fts.execute("INSERT INTO docs (body) VALUES ('anything')")

    def test_bad_span(self, fts: Connection) -> None:
        def factory(arguments: list[str]):
            def tokenize(flags: TokenizeFlags, text: str) -> Iterator[Token]:
                yield Token(TokenFlags.NONE, "x", (0, len(text) + 5))

            return tokenize

        fts.register_tokenizer("overrun", factory)
        fts.execute("CREATE VIRTUAL TABLE docs USING fts5(body, tokenize = 'overrun')")
        with pytest.raises(GenericError):
            fts.execute("INSERT INTO docs (body) VALUES ('short')")

    def test_contexts_released_on_close(self, fts: Connection) -> None:
        """Test that factory and instance contexts are released with the connection."""
        arena = get_arena()
        baseline = arena.live_kinds()

        fts.register_tokenizer("ws", whitespace)
        fts.execute("CREATE VIRTUAL TABLE docs USING fts5(body, tokenize = 'ws')")
        fts.execute("INSERT INTO docs (body) VALUES ('x')")
        assert arena.live_count("tokenizer_factory") == baseline["tokenizer_factory"] + 1
        assert arena.live_count("tokenizer") > baseline["tokenizer"]

        fts.close()

        assert arena.live_count("tokenizer_factory") == baseline["tokenizer_factory"]
        assert arena.live_count("tokenizer") == baseline["tokenizer"]
