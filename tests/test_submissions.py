import re

import pytest

from conftest import seed
from glimmer.errors import NoCurrentWordError, NotFoundError, ValidationError
from glimmer.schema import Word
from glimmer.submissions import ADJECTIVES, NOUNS, random_username

HANDLE = re.compile(r"^(?P<adj>[A-Za-z]+)-(?P<noun>[A-Za-z]+)-(?P<n>\d+)$")


def assert_handle(name: str):
    m = HANDLE.match(name)
    assert m, name
    assert m["adj"] in ADJECTIVES
    assert m["noun"] in NOUNS
    assert 1 <= int(m["n"]) <= 99


@pytest.fixture
def blorvek() -> Word:
    return Word(word="Blorvek", date="2024-01-01")


@pytest.mark.asyncio
async def test_submit_appends_one_entry_with_zero_likes(store, intake, blorvek):
    await seed(store, current=blorvek)

    sub = await intake.submit("  a floating feeling  ", "  Ada ")

    subs = await intake.list_submissions()
    assert len(subs) == 1
    assert subs[0] == sub
    assert sub.text == "a floating feeling"
    assert sub.username == "Ada"
    assert sub.likes == 0
    assert sub.word == "Blorvek"


@pytest.mark.asyncio
async def test_submit_without_username_gets_generated_handle(store, intake, blorvek):
    await seed(store, current=blorvek)
    sub = await intake.submit("the hush after thunder", "   ")
    assert_handle(sub.username)


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", " ", "\n\t ", None])
async def test_blank_text_is_rejected_without_side_effect(store, intake, blorvek, text):
    await seed(store, current=blorvek)
    with pytest.raises(ValidationError):
        await intake.submit(text)
    assert await intake.list_submissions() == []


@pytest.mark.asyncio
async def test_text_length_limit(store, intake, blorvek):
    await seed(store, current=blorvek)
    ok = await intake.submit("x" * 280)
    assert len(ok.text) == 280
    with pytest.raises(ValidationError):
        await intake.submit("x" * 281)
    assert len(await intake.list_submissions()) == 1


@pytest.mark.asyncio
async def test_overlong_username_is_rejected(store, intake, blorvek):
    await seed(store, current=blorvek)
    with pytest.raises(ValidationError):
        await intake.submit("hello", "n" * 41)


@pytest.mark.asyncio
async def test_submit_requires_current_word(intake):
    with pytest.raises(NoCurrentWordError):
        await intake.submit("too early")
    assert await intake.list_submissions() == []


@pytest.mark.asyncio
async def test_ids_are_unique(store, intake, blorvek):
    await seed(store, current=blorvek)
    subs = [await intake.submit(f"idea {i}") for i in range(30)]
    assert len({s.id for s in subs}) == 30


@pytest.mark.asyncio
async def test_like_increments_only_target(store, intake, blorvek):
    await seed(store, current=blorvek)
    a = await intake.submit("first")
    b = await intake.submit("second")

    await intake.like(b.id)
    liked = await intake.like(b.id)

    assert liked.id == b.id and liked.likes == 2
    by_id = {s.id: s.likes for s in await intake.list_submissions()}
    assert by_id == {a.id: 0, b.id: 2}


@pytest.mark.asyncio
async def test_like_unknown_id_is_not_found_and_changes_nothing(store, intake, blorvek):
    await seed(store, current=blorvek)
    a = await intake.submit("first")
    await intake.like(a.id)

    with pytest.raises(NotFoundError):
        await intake.like("does-not-exist")
    assert [s.likes for s in await intake.list_submissions()] == [1]


@pytest.mark.asyncio
async def test_like_after_rollover_is_not_found(store, intake, lifecycle, clock, blorvek):
    await seed(store, current=blorvek)
    sub = await intake.submit("soon archived")
    clock.day = "2024-01-02"
    await lifecycle.ensure_current_day()

    with pytest.raises(NotFoundError):
        await intake.like(sub.id)


@pytest.mark.asyncio
async def test_list_top_orders_by_likes(store, intake, blorvek):
    await seed(store, current=blorvek)
    a = await intake.submit("a")
    b = await intake.submit("b")
    c = await intake.submit("c")
    for _ in range(3):
        await intake.like(c.id)
    await intake.like(b.id)

    assert [s.id for s in await intake.list_submissions("top")] == [c.id, b.id, a.id]
    assert [s.id for s in await intake.list_submissions()] == [a.id, b.id, c.id]
    with pytest.raises(ValidationError):
        await intake.list_submissions("oldest")


def test_random_username_format():
    for _ in range(200):
        assert_handle(random_username())
