"""Callback bridge for FTS5 tokenizers.

A registered tokenizer is a factory: FTS5 calls xCreate with the arguments
from the ``tokenize=`` table option, the factory returns a tokenize
callable, and that callable is boxed as the Fts5Tokenizer instance. xDelete
releases the instance box; the factory box itself is released by FTS5
through the destructor passed to xCreateTokenizer.

Host tokenizers report spans in character offsets of the text they were
given. FTS5 works in UTF-8 byte offsets, so spans are translated with a
prefix-sum table before each xToken call.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import accumulate
from typing import Callable, Iterable, NamedTuple, Sequence, Union

from sqlite_bridge.adapters.outbound.context import get_arena, release_trampoline
from sqlite_bridge.adapters.outbound.marshal import decode_text, encode_short_text, read_bytes
from sqlite_bridge.adapters.outbound.native import ffi
from sqlite_bridge.domain.errors import InternalDriverError
from sqlite_bridge.domain.value_objects import ResultCode, TokenFlags, TokenizeFlags
from sqlite_bridge.infrastructure.logging import get_logger
from sqlite_bridge.infrastructure.metrics import get_metrics

logger = get_logger(__name__)

_arena = get_arena()

Span = Union[range, slice, tuple[int, int]]


class Token(NamedTuple):
    """One token produced by a host tokenizer.

    Attributes:
        flags: TokenFlags.COLOCATED for synonyms of the previous token
        text: The token as it should be indexed or matched
        span: Character offsets of the token in the tokenized text
    """

    flags: TokenFlags
    text: str
    span: Span


Tokenize = Callable[[TokenizeFlags, str], Iterable[Token]]
TokenizerFactory = Callable[[list[str]], Tokenize]


@dataclass
class TokenizerRegistration:
    name: str
    factory: TokenizerFactory


@dataclass
class TokenizerInstance:
    name: str
    tokenize: Tokenize


def byte_offsets(text: str) -> Sequence[int]:
    """Map each character offset of ``text`` (0..len) to its UTF-8 byte offset."""
    if text.isascii():
        return range(len(text) + 1)
    return list(accumulate((len(char.encode("utf-8")) for char in text), initial=0))


def char_span(span: Span, length: int) -> tuple[int, int]:
    """Normalize a token span to a validated (start, stop) pair."""
    if isinstance(span, (range, slice)):
        if span.step not in (None, 1):
            raise InternalDriverError(f"token span must be contiguous, got {span!r}")
        start, stop = span.start, span.stop
    else:
        start, stop = span
    if start is None:
        start = 0
    if stop is None:
        stop = length
    if not 0 <= start <= stop <= length:
        raise InternalDriverError(f"token span {start}..{stop} is outside the text (length {length})")
    return start, stop


def _tokenizer_failed(name: str, exc: Exception) -> int:
    get_metrics().callback_failures_total.labels(kind="tokenizer").inc()
    logger.error("tokenizer_failed", name=name, error=str(exc))
    return ResultCode.ERROR


@ffi.callback("int(void*, const char**, int, Fts5Tokenizer**)")
def _create_trampoline(user_data, arguments, argument_count, out):
    box = _arena.resolve(user_data)
    if box is None:
        return ResultCode.MISUSE
    registration = box.payload
    get_metrics().callback_invocations_total.labels(kind="tokenizer_create").inc()
    try:
        args = [decode_text(ffi.string(arguments[index])) for index in range(argument_count)]
        instance = _arena.retain(TokenizerInstance(registration.name, registration.factory(args)), "tokenizer")
    except Exception as exc:
        return _tokenizer_failed(registration.name, exc)
    out[0] = ffi.cast("Fts5Tokenizer *", instance.pointer)
    return ResultCode.OK


@ffi.callback("void(Fts5Tokenizer*)")
def _delete_trampoline(tokenizer):
    _arena.release(ffi.cast("void *", tokenizer))


@ffi.callback(
    "int(Fts5Tokenizer*, void*, int, const char*, int,"
    " int(*)(void*, int, const char*, int, int, int))"
)
def _tokenize_trampoline(tokenizer, callback_context, flags, text_pointer, text_length, emit):
    box = _arena.resolve(ffi.cast("void *", tokenizer))
    if box is None:
        return ResultCode.MISUSE
    instance = box.payload
    get_metrics().callback_invocations_total.labels(kind="tokenizer").inc()
    try:
        text = decode_text(read_bytes(text_pointer, text_length))
        offsets = byte_offsets(text)
        for token in instance.tokenize(TokenizeFlags(flags), text):
            start, stop = char_span(token.span, len(text))
            data = encode_short_text(token.text)
            rc = emit(callback_context, int(token.flags), data, len(data), offsets[start], offsets[stop])
            if rc != ResultCode.OK:
                return rc
    except Exception as exc:
        return _tokenizer_failed(instance.name, exc)
    return ResultCode.OK


_VTABLE = ffi.new("fts5_tokenizer *")
_VTABLE.xCreate = _create_trampoline
_VTABLE.xDelete = _delete_trampoline
_VTABLE.xTokenize = _tokenize_trampoline


def create_tokenizer(api, name: bytes, registration: TokenizerRegistration) -> int:
    """Register a tokenizer factory through an fts5_api pointer.

    xCreateTokenizer does not call the destructor on failure, so the
    factory context is released here in that case.
    """
    box = _arena.retain(registration, "tokenizer_factory")
    rc = api.xCreateTokenizer(api, name, box.pointer, _VTABLE, release_trampoline)
    if rc != ResultCode.OK:
        _arena.release(box.pointer)
    return rc
