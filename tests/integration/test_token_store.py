"""
Integration tests for TokenStore on SQLite.

Tests cover:
- Only the hash is stored
- verify() by scope, expiry and plaintext
- Unknown and expired tokens fail identically
- Bulk purge per (user, scope)
"""

from datetime import timedelta

import pytest

from backend.greenlight.data import TokenScope, User
from backend.greenlight.data.tokens import generate_token
from backend.greenlight.errors import RecordNotFoundError


async def create_users(models, count):
    """Insert count users and return them in id order."""
    users = []
    for i in range(count):
        user = User(name=f"User {i}", email=f"user{i}@example.com")
        user.password.set("pa55word!", 4)
        await models.users.insert(user)
        users.append(user)
    return users


class TestTokenStore:
    """Tests for TokenStore."""

    @pytest.mark.asyncio
    async def test_activation_scenario(self, models):
        """Issue for user 7, verify, purge, verify fails."""
        users = await create_users(models, 7)
        assert users[-1].id == 7

        token = await models.tokens.new(7, timedelta(hours=72), TokenScope.ACTIVATION)

        assert await models.tokens.verify(TokenScope.ACTIVATION, token.plaintext) == 7

        await models.tokens.delete_all_for_user(TokenScope.ACTIVATION, 7)

        with pytest.raises(RecordNotFoundError):
            await models.tokens.verify(TokenScope.ACTIVATION, token.plaintext)

    @pytest.mark.asyncio
    async def test_only_hash_is_stored(self, models, db):
        (user,) = await create_users(models, 1)
        token = await models.tokens.new(user.id, timedelta(hours=1), TokenScope.ACTIVATION)

        with db.connect() as conn:
            rows = conn.execute("SELECT * FROM tokens").fetchall()

        assert len(rows) == 1
        assert bytes(rows[0]["hash"]) == token.hash
        for value in tuple(rows[0]):
            assert value != token.plaintext

    @pytest.mark.asyncio
    async def test_scope_must_match(self, models):
        (user,) = await create_users(models, 1)
        token = await models.tokens.new(user.id, timedelta(hours=1), TokenScope.ACTIVATION)

        with pytest.raises(RecordNotFoundError):
            await models.tokens.verify(TokenScope.AUTHENTICATION, token.plaintext)

    @pytest.mark.asyncio
    async def test_expired_and_unknown_fail_identically(self, models):
        (user,) = await create_users(models, 1)
        expired = generate_token(user.id, timedelta(seconds=-1), TokenScope.ACTIVATION)
        await models.tokens.insert(expired)

        with pytest.raises(RecordNotFoundError) as expired_exc:
            await models.tokens.verify(TokenScope.ACTIVATION, expired.plaintext)
        with pytest.raises(RecordNotFoundError) as unknown_exc:
            await models.tokens.verify(TokenScope.ACTIVATION, "A" * 26)

        assert str(expired_exc.value) == str(unknown_exc.value)

    @pytest.mark.asyncio
    async def test_multiple_tokens_coexist_until_purged(self, models):
        (user,) = await create_users(models, 1)
        first = await models.tokens.new(user.id, timedelta(hours=1), TokenScope.ACTIVATION)
        second = await models.tokens.new(user.id, timedelta(hours=1), TokenScope.ACTIVATION)
        auth = await models.tokens.new(user.id, timedelta(hours=1), TokenScope.AUTHENTICATION)

        assert await models.tokens.verify(TokenScope.ACTIVATION, first.plaintext) == user.id
        assert await models.tokens.verify(TokenScope.ACTIVATION, second.plaintext) == user.id

        deleted = await models.tokens.delete_all_for_user(TokenScope.ACTIVATION, user.id)
        assert deleted == 2

        # Other scopes are untouched
        assert await models.tokens.verify(TokenScope.AUTHENTICATION, auth.plaintext) == user.id

    @pytest.mark.asyncio
    async def test_purge_is_per_user(self, models):
        alice, bob = await create_users(models, 2)
        alice_token = await models.tokens.new(alice.id, timedelta(hours=1), TokenScope.ACTIVATION)
        await models.tokens.new(bob.id, timedelta(hours=1), TokenScope.ACTIVATION)

        await models.tokens.delete_all_for_user(TokenScope.ACTIVATION, bob.id)

        assert await models.tokens.verify(TokenScope.ACTIVATION, alice_token.plaintext) == alice.id
