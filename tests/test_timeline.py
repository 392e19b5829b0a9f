from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from timeline_service.cache import timeline_key
from timeline_service.domain.models import Post, PostKind, timeline_score
from timeline_service.errors import DependencyError, ValidationError
from timeline_service.schemas import PostCreate

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _post_many(backend, author, count):
    return [
        asyncio.run(backend.ingest.create_post(author, PostCreate(text=f"post {index}")))
        for index in range(count)
    ]


def test_posts_newest_first(backend) -> None:
    author = backend.users.add("Dana")
    posts = _post_many(backend, author, 3)

    page = asyncio.run(backend.reader.read_page(author.id, 0, 10))

    assert [p.id for p in page.posts] == [p.id for p in reversed(posts)]
    created = [p.created_at for p in page.posts]
    assert created == sorted(created, reverse=True)


def test_pages_concatenate_without_gaps_or_duplicates(backend) -> None:
    author = backend.users.add("Dana")
    posts = _post_many(backend, author, 7)
    expected = [p.id for p in reversed(posts)]

    seen = []
    for page_number in range(3):
        page = asyncio.run(backend.reader.read_page(author.id, page_number, 3))
        seen.extend(p.id for p in page.posts)
        assert page.has_more == (page_number < 2)

    assert seen == expected


def test_page_past_the_end_is_empty(backend) -> None:
    author = backend.users.add("Dana")
    _post_many(backend, author, 5)

    page = asyncio.run(backend.reader.read_page(author.id, 1, 10))

    assert page.posts == []
    assert page.has_more is False


def test_exact_fit_has_no_more(backend) -> None:
    author = backend.users.add("Dana")
    _post_many(backend, author, 4)

    page = asyncio.run(backend.reader.read_page(author.id, 1, 2))

    assert len(page.posts) == 2
    assert page.has_more is False


def test_rank_order_restored_after_bulk_fetch(backend) -> None:
    author = backend.users.add("Dana")
    posts = _post_many(backend, author, 4)
    backend.posts.reverse_fetch_order = True

    page = asyncio.run(backend.reader.read_page(author.id, 0, 4))

    assert [p.id for p in page.posts] == [p.id for p in reversed(posts)]


def test_interleaves_authors_by_creation_time(backend) -> None:
    reader_user = backend.users.add("Reader")
    first = backend.users.add("First")
    second = backend.users.add("Second")
    asyncio.run(backend.follow(reader_user, first))
    asyncio.run(backend.follow(reader_user, second))

    a = asyncio.run(backend.ingest.create_post(first, PostCreate(text="a")))
    b = asyncio.run(backend.ingest.create_post(second, PostCreate(text="b")))
    c = asyncio.run(backend.ingest.create_post(first, PostCreate(text="c")))

    page = asyncio.run(backend.reader.read_page(reader_user.id, 0, 10))

    assert [p.id for p in page.posts] == [c.id, b.id, a.id]


def test_missing_posts_are_skipped(backend) -> None:
    author = backend.users.add("Dana")
    posts = _post_many(backend, author, 2)
    del backend.posts.posts[posts[0].id]

    page = asyncio.run(backend.reader.read_page(author.id, 0, 10))

    assert [p.id for p in page.posts] == [posts[1].id]


def test_viewer_likes_are_reported(backend) -> None:
    author = backend.users.add("Dana")
    posts = _post_many(backend, author, 2)
    asyncio.run(backend.social.toggle_like(author.id, posts[0].id))

    page = asyncio.run(backend.reader.read_page(author.id, 0, 10, viewer_id=author.id))
    anonymous = asyncio.run(backend.reader.read_page(author.id, 0, 10))

    assert page.liked_post_ids == [posts[0].id]
    assert anonymous.liked_post_ids == []


def test_store_failure_surfaces(backend) -> None:
    author = backend.users.add("Dana")
    _post_many(backend, author, 1)
    backend.store.fail = True

    with pytest.raises(DependencyError):
        asyncio.run(backend.reader.read_page(author.id, 0, 10))


@pytest.mark.parametrize("page, page_size", [(-1, 10), (0, 0)])
def test_invalid_paging_rejected(backend, page, page_size) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(backend.reader.read_page("someone", page, page_size))


def test_follow_does_not_backfill_until_rebuild(backend) -> None:
    author = backend.users.add("Author")
    late = backend.users.add("Late")
    old_post = asyncio.run(backend.ingest.create_post(author, PostCreate(text="old")))
    own_post = asyncio.run(backend.ingest.create_post(late, PostCreate(text="mine")))

    asyncio.run(backend.social.toggle_follow(late.id, author.id))
    before = asyncio.run(backend.reader.read_page(late.id, 0, 10))
    assert [p.id for p in before.posts] == [own_post.id]

    total = asyncio.run(backend.reader.rebuild(late.id, limit=1000, ttl=86400))
    after = asyncio.run(backend.reader.read_page(late.id, 0, 10))

    assert total == 2
    assert [p.id for p in after.posts] == [own_post.id, old_post.id]
    assert backend.store.ttls[timeline_key(late.id)] == 86400


def test_rebuild_respects_limit(backend) -> None:
    author = backend.users.add("Dana")
    posts = _post_many(backend, author, 5)

    total = asyncio.run(backend.reader.rebuild(author.id, limit=2))

    assert total == 2
    members = asyncio.run(backend.store.zrevrange(timeline_key(author.id), 0, -1))
    assert members == [posts[4].id, posts[3].id]


def test_rebuild_never_exceeds_trim_length(make_backend) -> None:
    backend = make_backend(max_timeline_length=2)
    author = backend.users.add("Dana")
    posts = _post_many(backend, author, 5)

    total = asyncio.run(backend.reader.rebuild(author.id, limit=1000))

    assert total == 2
    members = asyncio.run(backend.store.zrevrange(timeline_key(author.id), 0, -1))
    assert members == [posts[4].id, posts[3].id]


def test_reader_requires_follow_repository(backend) -> None:
    with pytest.raises(TypeError):
        type(backend.reader)(backend.store, backend.posts, backend.likes)


def test_scores_keep_microsecond_precision() -> None:
    earlier = EPOCH + timedelta(microseconds=100)
    later = EPOCH + timedelta(microseconds=101)

    assert timeline_score(later) - timeline_score(earlier) == 1.0
    assert timeline_score(earlier.replace(tzinfo=None)) == timeline_score(earlier)


def test_same_millisecond_posts_ordered_by_creation_time(backend) -> None:
    author = backend.users.add("Dana")
    # Member order alone would put "ffff" first
    older = Post(
        id="ffff", author_id=author.id, text="older", kind=PostKind.THREAD,
        created_at=EPOCH + timedelta(microseconds=100),
    )
    newer = Post(
        id="0000", author_id=author.id, text="newer", kind=PostKind.THREAD,
        created_at=EPOCH + timedelta(microseconds=900),
    )
    for post in (older, newer):
        backend.posts.posts[post.id] = post
        asyncio.run(backend.fanout.fan_out(post.id, author.id, post.score))

    page = asyncio.run(backend.reader.read_page(author.id, 0, 10))

    assert [p.id for p in page.posts] == ["0000", "ffff"]
