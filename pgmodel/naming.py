"""
Table naming rules: a model's table is its class name, lower-cased and pluralized.
"""

from __future__ import annotations

import inflection


def pluralize(word: str) -> str:
    """Return the English plural of a lower-case ``word`` (Rails inflector rules)."""
    return inflection.pluralize(word)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def table_name_for(model: type) -> str:
    """
    Table name for a model class. ``__table__`` on the class wins over the
    derived name.
    """
    explicit = model.__dict__.get("__table__")
    if explicit:
        return explicit
    return pluralize(model.__name__.lower())


__all__ = ["pluralize", "quote_identifier", "table_name_for"]
