"""cffi binding to the SQLite C library.

The engine is loaded in ABI mode: the declarations below mirror sqlite3.h and
fts5.h for the subset of the API the driver uses, and the shared library is
located at import time.

Ownership notes:
- Pointers returned by sqlite3_column_* / sqlite3_value_* are BORROWED and
  only valid until the next step/reset/finalize (or callback return).
- sqlite3_expanded_sql() returns an OWNED string freed with sqlite3_free().
- Text and blobs are always bound with SQLITE_TRANSIENT so the engine copies
  them before the call returns.
"""

from __future__ import annotations

import ctypes.util
from pathlib import Path

from cffi import FFI

from sqlite_bridge.infrastructure.config import get_config

ffi = FFI()

ffi.cdef(
    r"""
    typedef struct sqlite3 sqlite3;
    typedef struct sqlite3_stmt sqlite3_stmt;
    typedef struct sqlite3_value sqlite3_value;
    typedef struct sqlite3_context sqlite3_context;
    typedef struct sqlite3_backup sqlite3_backup;
    typedef long long sqlite3_int64;
    typedef unsigned long long sqlite3_uint64;
    typedef void (*sqlite3_destructor_type)(void*);

    const char *sqlite3_libversion(void);
    int sqlite3_libversion_number(void);
    int sqlite3_threadsafe(void);
    int sqlite3_initialize(void);
    int sqlite3_shutdown(void);
    int sqlite3_config(int, ...);
    int sqlite3_release_memory(int);
    int sqlite3_enable_shared_cache(int);
    const char *sqlite3_errstr(int);
    void sqlite3_free(void*);

    int sqlite3_open_v2(const char *filename, sqlite3 **ppDb, int flags, const char *zVfs);
    int sqlite3_close_v2(sqlite3*);
    int sqlite3_db_config(sqlite3*, int op, ...);
    int sqlite3_db_release_memory(sqlite3*);
    const char *sqlite3_errmsg(sqlite3*);
    int sqlite3_errcode(sqlite3*);
    int sqlite3_busy_timeout(sqlite3*, int ms);
    const char *sqlite3_db_filename(sqlite3 *db, const char *zDbName);
    sqlite3_int64 sqlite3_last_insert_rowid(sqlite3*);
    int sqlite3_changes(sqlite3*);
    int sqlite3_total_changes(sqlite3*);
    int sqlite3_get_autocommit(sqlite3*);

    int sqlite3_prepare_v3(sqlite3 *db, const char *zSql, int nByte, unsigned int prepFlags,
                           sqlite3_stmt **ppStmt, const char **pzTail);
    int sqlite3_finalize(sqlite3_stmt*);
    int sqlite3_reset(sqlite3_stmt*);
    int sqlite3_clear_bindings(sqlite3_stmt*);
    int sqlite3_step(sqlite3_stmt*);
    const char *sqlite3_sql(sqlite3_stmt*);
    char *sqlite3_expanded_sql(sqlite3_stmt*);
    int sqlite3_stmt_readonly(sqlite3_stmt*);
    int sqlite3_stmt_busy(sqlite3_stmt*);
    int sqlite3_column_count(sqlite3_stmt*);
    const char *sqlite3_column_name(sqlite3_stmt*, int N);
    int sqlite3_column_type(sqlite3_stmt*, int iCol);
    sqlite3_int64 sqlite3_column_int64(sqlite3_stmt*, int iCol);
    double sqlite3_column_double(sqlite3_stmt*, int iCol);
    const unsigned char *sqlite3_column_text(sqlite3_stmt*, int iCol);
    const void *sqlite3_column_blob(sqlite3_stmt*, int iCol);
    int sqlite3_column_bytes(sqlite3_stmt*, int iCol);

    int sqlite3_bind_parameter_count(sqlite3_stmt*);
    int sqlite3_bind_parameter_index(sqlite3_stmt*, const char *zName);
    const char *sqlite3_bind_parameter_name(sqlite3_stmt*, int);
    int sqlite3_bind_null(sqlite3_stmt*, int);
    int sqlite3_bind_int64(sqlite3_stmt*, int, sqlite3_int64);
    int sqlite3_bind_double(sqlite3_stmt*, int, double);
    int sqlite3_bind_text64(sqlite3_stmt*, int, const char*, sqlite3_uint64,
                            void(*)(void*), unsigned char encoding);
    int sqlite3_bind_blob64(sqlite3_stmt*, int, const void*, sqlite3_uint64, void(*)(void*));
    int sqlite3_bind_pointer(sqlite3_stmt*, int, void*, const char*, void(*)(void*));

    int sqlite3_value_type(sqlite3_value*);
    sqlite3_int64 sqlite3_value_int64(sqlite3_value*);
    double sqlite3_value_double(sqlite3_value*);
    const unsigned char *sqlite3_value_text(sqlite3_value*);
    const void *sqlite3_value_blob(sqlite3_value*);
    int sqlite3_value_bytes(sqlite3_value*);

    void *sqlite3_user_data(sqlite3_context*);
    void *sqlite3_aggregate_context(sqlite3_context*, int nBytes);
    void *sqlite3_get_auxdata(sqlite3_context*, int N);
    void sqlite3_set_auxdata(sqlite3_context*, int N, void*, void (*)(void*));
    void sqlite3_result_null(sqlite3_context*);
    void sqlite3_result_int64(sqlite3_context*, sqlite3_int64);
    void sqlite3_result_double(sqlite3_context*, double);
    void sqlite3_result_text64(sqlite3_context*, const char*, sqlite3_uint64,
                               void(*)(void*), unsigned char encoding);
    void sqlite3_result_blob64(sqlite3_context*, const void*, sqlite3_uint64, void(*)(void*));
    void sqlite3_result_error(sqlite3_context*, const char*, int);
    void sqlite3_result_error_code(sqlite3_context*, int);
    void sqlite3_result_error_nomem(sqlite3_context*);
    void sqlite3_result_error_toobig(sqlite3_context*);

    int sqlite3_create_function_v2(
        sqlite3 *db, const char *zFunctionName, int nArg, int eTextRep, void *pApp,
        void (*xFunc)(sqlite3_context*, int, sqlite3_value**),
        void (*xStep)(sqlite3_context*, int, sqlite3_value**),
        void (*xFinal)(sqlite3_context*),
        void (*xDestroy)(void*));
    int sqlite3_create_collation_v2(
        sqlite3*, const char *zName, int eTextRep, void *pArg,
        int (*xCompare)(void*, int, const void*, int, const void*),
        void (*xDestroy)(void*));

    sqlite3_backup *sqlite3_backup_init(sqlite3 *pDest, const char *zDestName,
                                        sqlite3 *pSource, const char *zSourceName);
    int sqlite3_backup_step(sqlite3_backup *p, int nPage);
    int sqlite3_backup_finish(sqlite3_backup *p);
    int sqlite3_backup_remaining(sqlite3_backup *p);
    int sqlite3_backup_pagecount(sqlite3_backup *p);

    typedef struct Fts5Tokenizer Fts5Tokenizer;
    typedef struct fts5_tokenizer fts5_tokenizer;
    struct fts5_tokenizer {
        int (*xCreate)(void*, const char **azArg, int nArg, Fts5Tokenizer **ppOut);
        void (*xDelete)(Fts5Tokenizer*);
        int (*xTokenize)(Fts5Tokenizer*, void *pCtx, int flags, const char *pText, int nText,
                         int (*xToken)(void *pCtx, int tflags, const char *pToken, int nToken,
                                       int iStart, int iEnd));
    };

    typedef struct fts5_api fts5_api;
    struct fts5_api {
        int iVersion;
        int (*xCreateTokenizer)(fts5_api *pApi, const char *zName, void *pUserData,
                                fts5_tokenizer *pTokenizer, void (*xDestroy)(void*));
        int (*xFindTokenizer)(fts5_api *pApi, const char *zName, void **ppUserData,
                              fts5_tokenizer *pTokenizer);
        void *xCreateFunction;
    };
    """
)

_LIBRARY_CANDIDATES = (
    "libsqlite3.so.0",
    "libsqlite3.so",
    "libsqlite3.dylib",
    "sqlite3.dll",
)

SQLITE_UTF8 = 1
SQLITE_DETERMINISTIC = 0x000000800
SQLITE_TRANSIENT = ffi.cast("sqlite3_destructor_type", -1)
SQLITE_CONFIG_LOG = 16
MAX_SHORT_LENGTH = 2**31 - 1

FTS5_API_POINTER_TYPE = ffi.new("char[]", b"fts5_api_ptr")
"""Pointer type tag for the fts5(?) handshake; must stay alive while bound."""


def _load_library():
    configured = get_config().library.path
    if configured is not None:
        return ffi.dlopen(str(Path(configured).expanduser()))

    found = ctypes.util.find_library("sqlite3")
    candidates = ((found,) if found else ()) + _LIBRARY_CANDIDATES
    errors = []
    for name in candidates:
        try:
            return ffi.dlopen(name)
        except OSError as exc:
            errors.append(f"{name}: {exc}")
    raise OSError("Could not find the SQLite shared library (" + "; ".join(errors) + ")")


lib = _load_library()


def c_string(pointer) -> str | None:
    """Decode a NUL-terminated UTF-8 string owned by the engine."""
    if pointer == ffi.NULL:
        return None
    return ffi.string(pointer).decode("utf-8", "replace")


def error_string(code: int) -> str:
    """Engine description of a result code."""
    return c_string(lib.sqlite3_errstr(code)) or "Error"


def error_message(db) -> str | None:
    """Most recent error message recorded on a connection handle."""
    if db is None or db == ffi.NULL:
        return None
    return c_string(lib.sqlite3_errmsg(db))
