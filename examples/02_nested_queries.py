"""
Example 02: Nested Queries and Discriminators

This example demonstrates filling a property from a second statement
(nested queries, eager and lazy) and picking subtypes per row with a
discriminator column.
"""

import logging
import sqlite3
from dataclasses import dataclass

from row_graph import (
    DBAPICursor,
    Engine,
    LazyLoadable,
    MappingSettings,
    StatementMapping,
    plan_for,
)


@dataclass
class Author:
    id: int
    name: str


@dataclass
class Book(LazyLoadable):
    """Book whose author is loaded on first access"""
    id: int = 0
    title: str = ""
    kind: str = ""
    author: Author | None = None


@dataclass
class Ebook(Book):
    file_size: int = 0


SQL = {
    "book.all": "SELECT id, title, kind, file_size, author_id FROM book ORDER BY id",
    "author.by_id": "SELECT id, name FROM author WHERE id = :id",
}


def main():
    logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    conn = sqlite3.connect(":memory:")
    conn.executescript("""
        CREATE TABLE author (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
        CREATE TABLE book (
            id INTEGER PRIMARY KEY, title TEXT, kind TEXT, file_size INTEGER, author_id INTEGER
        );
        INSERT INTO author VALUES (1, 'Alice'), (2, 'Bob');
        INSERT INTO book VALUES
            (1, 'Paper Trails', 'print', NULL, 1),
            (2, 'Bits and Bytes', 'ebook', 2048, 2),
            (3, 'More Trails', 'print', NULL, 1);
    """)

    def run(statement_id, params):
        bind = params if isinstance(params, dict) else {"id": params}
        return [DBAPICursor(conn.execute(SQL[statement_id], bind))]

    plans = [
        plan_for(Book)
        .id("id")
        .association("author", nested_query="author.by_id", column="author_id", lazy=True)
        .discriminator("kind", {"ebook": "Ebook"})
        .build(),
        plan_for(Ebook)
        .id("id")
        .association("author", nested_query="author.by_id", column="author_id", lazy=True)
        .build(),
        plan_for(Author).id("id").result("name").build(),
    ]
    statements = [
        StatementMapping("book.all", ("Book",)),
        StatementMapping("author.by_id", ("Author",)),
    ]

    engine = Engine.from_plans(
        run,
        plans,
        statements,
        settings=MappingSettings(unknown_column_behavior="warn"),
    )

    books = engine.fetch_all("book.all")

    # Each book queries its author on first access
    for book in books:
        print(f"{type(book).__name__}: {book.title} by {book.author.name}")

    conn.close()


if __name__ == "__main__":
    main()
