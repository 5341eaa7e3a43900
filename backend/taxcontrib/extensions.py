# Overview: Flask extension instances for database and migrations.

import sqlite3

from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import String, event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import GenericFunction

db = SQLAlchemy()
migrate = Migrate()


class unicode_lower(GenericFunction):
    """
    Unicode-aware lower().

    SQLite's built-in lower() only folds ASCII, so "SOCIÉTÉ" would become
    "sociÉtÉ". On SQLite this compiles to a Python-backed function registered
    per connection; elsewhere it is the native lower().
    """
    type = String()
    inherit_cache = True


@compiles(unicode_lower)
def _compile_unicode_lower(element, compiler, **kw):
    return "lower(%s)" % compiler.process(element.clauses, **kw)


@compiles(unicode_lower, "sqlite")
def _compile_unicode_lower_sqlite(element, compiler, **kw):
    return "unicode_lower(%s)" % compiler.process(element.clauses, **kw)


def _lower(value):
    return value.lower() if isinstance(value, str) else value


@event.listens_for(Engine, "connect")
def register_sqlite_functions(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.create_function("unicode_lower", 1, _lower, deterministic=True)
