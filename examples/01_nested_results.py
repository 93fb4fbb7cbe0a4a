"""
Example 01: Nested Results

This example demonstrates materializing a blog -> posts -> comments graph
from one joined SQLite query using RowGraph's joined nested plans.
"""

import sqlite3
from dataclasses import dataclass, field

from row_graph import DBAPICursor, Engine, StatementMapping, plan_for


@dataclass
class Comment:
    """Comment on a post"""
    id: int
    body: str


@dataclass
class Post:
    """Post entity with comments collection"""
    id: int
    subject: str
    comments: list[Comment] = field(default_factory=list)


@dataclass
class Blog:
    """Blog aggregate root"""
    id: int
    title: str
    posts: list[Post] = field(default_factory=list)


SQL = {
    "blog.with_posts": """
        SELECT
            b.id AS blog_id,
            b.title AS blog_title,
            p.id AS post_id,
            p.subject AS post_subject,
            c.id AS post_comment_id,
            c.body AS post_comment_body
        FROM blog b
        LEFT JOIN post p ON p.blog_id = b.id
        LEFT JOIN comment c ON c.post_id = p.id
        ORDER BY b.id, p.id, c.id
    """,
}


def main():
    conn = sqlite3.connect(":memory:")
    conn.executescript("""
        CREATE TABLE blog (id INTEGER PRIMARY KEY, title TEXT NOT NULL);
        CREATE TABLE post (id INTEGER PRIMARY KEY, blog_id INTEGER, subject TEXT);
        CREATE TABLE comment (id INTEGER PRIMARY KEY, post_id INTEGER, body TEXT);
        INSERT INTO blog VALUES (1, 'Engineering'), (2, 'Empty');
        INSERT INTO post VALUES (10, 1, 'Release notes'), (11, 1, 'Postmortem');
        INSERT INTO comment VALUES (100, 10, 'Nice'), (101, 10, 'Thanks');
    """)

    def run(statement_id, params):
        return [DBAPICursor(conn.execute(SQL[statement_id], params or {}))]

    # Define mapping plans; nested plans read columns under their prefix
    plans = [
        plan_for(Blog)
        .id("id", "blog_id")
        .result("title", "blog_title")
        .collection("posts", "Post", column_prefix="post_", not_null=["id"])
        .build(),
        plan_for(Post)
        .id("id")
        .result("subject")
        .collection("comments", "Comment", column_prefix="comment_", not_null=["id"])
        .build(),
        plan_for(Comment).id("id").result("body").build(),
    ]
    statements = [
        StatementMapping("blog.with_posts", ("Blog",)),
        StatementMapping("blog.with_posts.streamed", ("Blog",), result_ordered=True),
    ]

    engine = Engine.from_plans(
        lambda statement_id, params: run(statement_id.removesuffix(".streamed"), params),
        plans,
        statements,
    )

    # Collect every blog; repeated join rows collapse into one object each
    print("=== Fetch All ===")
    for blog in engine.fetch_all("blog.with_posts"):
        print(f"{blog.title}: {len(blog.posts)} posts")
        for post in blog.posts:
            print(f"  {post.subject} ({len(post.comments)} comments)")

    # Ordered statements hand each blog over as soon as it is complete
    print("\n=== Stream ===")
    engine.stream(
        "blog.with_posts.streamed",
        None,
        lambda blog: print(f"completed {blog.title} with {len(blog.posts)} posts"),
    )

    conn.close()


if __name__ == "__main__":
    main()
