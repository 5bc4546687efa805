import asyncio

import pytest
from conftest import create_asset, create_user
from sqlalchemy import select

from app.models import Asset, Visibility
from app.services import share_tokens
from app.services.share_tokens import ShareTokenExhaustedError, assign_share_token, clear_share_token


async def test_assign_sets_token_and_visibility(session_factory):
    async with session_factory() as session:
        owner = await create_user(session)
        asset = await create_asset(session, owner)

        token = await assign_share_token(session, asset.id)
        await session.refresh(asset)

    assert len(token) == 32
    assert asset.share_token == token
    assert asset.visibility == Visibility.SHARED


async def test_assign_is_idempotent(session_factory):
    async with session_factory() as session:
        owner = await create_user(session)
        asset = await create_asset(session, owner)

        first = await assign_share_token(session, asset.id)
        second = await assign_share_token(session, asset.id)

    assert first == second


async def test_concurrent_assign_converges_on_one_token(session_factory):
    async with session_factory() as session:
        owner = await create_user(session)
        asset = await create_asset(session, owner)

    async def _assign():
        async with session_factory() as session:
            return await assign_share_token(session, asset.id)

    tokens = await asyncio.gather(*[_assign() for _ in range(8)])

    assert len(set(tokens)) == 1
    async with session_factory() as session:
        stored = (await session.execute(select(Asset.share_token).where(Asset.id == asset.id))).scalar_one()
    assert stored == tokens[0]


async def test_collision_retries_with_fresh_token(session_factory, monkeypatch):
    async with session_factory() as session:
        owner = await create_user(session)
        await create_asset(session, owner, visibility=Visibility.SHARED, share_token="taken")
        target = await create_asset(session, owner, object_key="users/x/other.png")

        candidates = iter(["taken", "fresh"])
        monkeypatch.setattr(share_tokens, "generate_share_token", lambda num_bytes=16: next(candidates))

        token = await assign_share_token(session, target.id)

    assert token == "fresh"


async def test_collision_exhaustion_raises(session_factory, monkeypatch):
    async with session_factory() as session:
        owner = await create_user(session)
        await create_asset(session, owner, visibility=Visibility.SHARED, share_token="taken")
        target = await create_asset(session, owner, object_key="users/x/other.png")
        monkeypatch.setattr(share_tokens, "generate_share_token", lambda num_bytes=16: "taken")

        with pytest.raises(ShareTokenExhaustedError):
            await assign_share_token(session, target.id, max_attempts=3)


async def test_concurrent_assign_across_assets_yields_distinct_tokens(session_factory):
    async with session_factory() as session:
        owner = await create_user(session)
        asset_ids = [(await create_asset(session, owner, object_key=f"users/x/{i}.png")).id for i in range(20)]

    async def _assign(asset_id):
        async with session_factory() as session:
            return await assign_share_token(session, asset_id)

    tokens = await asyncio.gather(*[_assign(asset_id) for asset_id in asset_ids])

    assert len(set(tokens)) == len(asset_ids)
    async with session_factory() as session:
        stored = (await session.execute(select(Asset.id, Asset.share_token).where(Asset.id.in_(asset_ids)))).all()
    assert dict(stored) == dict(zip(asset_ids, tokens))


async def test_clear_share_token_makes_asset_private(session_factory):
    async with session_factory() as session:
        owner = await create_user(session)
        asset = await create_asset(session, owner)
        await assign_share_token(session, asset.id)

        await clear_share_token(session, asset.id)
        await session.refresh(asset)

    assert asset.share_token is None
    assert asset.visibility == Visibility.PRIVATE
