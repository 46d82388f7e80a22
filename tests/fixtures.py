"""Database fixtures for CriteriaQL tests (shared)."""

import pytest
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User, Post, PostComment, PostTag, PostStatus

BASE_TIME = datetime(2024, 1, 1, 10, 0, 0)


async def create_sample_users(session: AsyncSession):
    """Create and commit the sample users used across tests."""
    users = [
        User(name="Alice Johnson", email="alice@example.com", is_admin=True),
        User(name="Bob Smith", email="bob@example.com", is_admin=False),
        User(name="Charlie Brown", email="charlie@example.com", is_admin=False),
        User(name="Dave NoPosts", email="dave@example.com", is_admin=False),
    ]
    session.add_all(users)
    await session.flush()
    await session.commit()
    return users


@pytest.fixture(scope="function")
async def sample_users(db_session: AsyncSession):
    return await create_sample_users(db_session)


async def create_sample_posts(session: AsyncSession, users):
    """Create and commit the sample posts with deterministic timestamps and tags.

    | title            | author  | status    | rating | featured | tags            |
    |------------------|---------|-----------|--------|----------|-----------------|
    | First Post       | Alice   | PUBLISHED | 5      | yes      | intro, hello    |
    | GraphQL is Great | Alice   | PUBLISHED | 4      | no       | graphql         |
    | SQLAlchemy Tips  | Bob     | DRAFT     | 3      | no       | python, hello   |
    | Async Patterns   | Bob     | ARCHIVED  | -      | no       |                 |
    | Charlie Writes   | Charlie | DRAFT     | 2      | no       | intro           |
    """
    alice, bob, charlie, _ = users
    rows = [
        ("First Post", "Hello world!", alice, PostStatus.PUBLISHED, 5, True, ["intro", "hello"]),
        ("GraphQL is Great", "I love GraphQL!", alice, PostStatus.PUBLISHED, 4, False, ["graphql"]),
        ("SQLAlchemy Tips", "Some useful tips...", bob, PostStatus.DRAFT, 3, False, ["python", "hello"]),
        ("Async Patterns", "Awaiting everything", bob, PostStatus.ARCHIVED, None, False, []),
        ("Charlie Writes", "A first attempt", charlie, PostStatus.DRAFT, 2, False, ["intro"]),
    ]
    posts = []
    for i, (title, content, author, status, rating, featured, tags) in enumerate(rows):
        post = Post(
            title=title,
            content=content,
            author_id=author.id,
            status=status,
            rating=rating,
            featured=featured,
            created_at=BASE_TIME + timedelta(days=i),
        )
        post.tags = [PostTag(name=t) for t in tags]
        posts.append(post)
    session.add_all(posts)
    await session.flush()
    await session.commit()
    return posts


@pytest.fixture(scope="function")
async def sample_posts(db_session: AsyncSession, sample_users):
    return await create_sample_posts(db_session, sample_users)


async def create_sample_comments(session: AsyncSession, users, posts):
    """Three comments on the first post, one on the second and one on the third."""
    alice, bob, charlie, dave = users
    first, second, third = posts[0], posts[1], posts[2]
    comments = [
        PostComment(content="Nice intro", rate=5, post_id=first.id, author_id=bob.id),
        PostComment(content="Nice one", rate=4, post_id=first.id, author_id=charlie.id),
        PostComment(content="Nice, thanks", rate=5, post_id=first.id, author_id=dave.id),
        PostComment(content="Agreed", rate=3, post_id=second.id, author_id=charlie.id),
        PostComment(content="Could be better", rate=1, post_id=third.id, author_id=alice.id),
    ]
    session.add_all(comments)
    await session.flush()
    await session.commit()
    return comments


@pytest.fixture(scope="function")
async def sample_comments(db_session: AsyncSession, sample_users, sample_posts):
    return await create_sample_comments(db_session, sample_users, sample_posts)


@pytest.fixture(scope="function")
async def populated_db(sample_users, sample_posts, sample_comments):
    return {
        'users': sample_users,
        'posts': sample_posts,
        'comments': sample_comments,
    }
