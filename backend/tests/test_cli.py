"""
Tests for the administration CLI.
"""

from unittest.mock import AsyncMock, patch

import pytest

import cli
from models.user import UserType
from services.passwords import verify_password
from services.stores import UserStore


class TestCreateAdmin:
    @pytest.mark.asyncio
    async def test_creates_admin(self, test_database, db_session):
        user_id, created = await cli.create_admin(
            "Root@Shop.com", "admin-password", first_name="Ro", database=test_database
        )

        assert created is True
        user = await UserStore(db_session).get_by_id(user_id)
        assert user.email == "root@shop.com"
        assert user.user_type == UserType.ADMIN
        assert user.first_name == "Ro"
        assert verify_password("admin-password", user.password_hash)

    @pytest.mark.asyncio
    async def test_promotes_existing_user(self, test_database, db_session, make_user):
        existing = await make_user(is_active=False)

        user_id, created = await cli.create_admin("a@x.com", "admin-password", database=test_database)

        assert created is False
        assert user_id == existing.id
        await db_session.refresh(existing)
        assert existing.user_type == UserType.ADMIN
        assert existing.is_active is True
        # Names are kept when not given
        assert existing.first_name == "Ann"


class TestMain:
    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_short_password_rejected(self, capsys):
        with patch.object(cli, "create_admin", new=AsyncMock()) as create_admin:
            code = cli.main(["create-admin", "--email", "root@shop.com", "--password", "short"])

        assert code == 1
        create_admin.assert_not_called()
        assert "at least 8 characters" in capsys.readouterr().err

    def test_create_admin_command(self, capsys):
        with patch.object(cli, "create_admin", new=AsyncMock(return_value=(5, True))), patch.object(
            cli, "_run_and_dispose", new=lambda coro: coro
        ):
            code = cli.main(["create-admin", "--email", "Root@Shop.com", "--password", "admin-password"])

        assert code == 0
        assert "Admin created: id=5 email=root@shop.com" in capsys.readouterr().out

    def test_purge_tokens_command(self, capsys):
        with patch.object(cli, "purge_tokens", new=AsyncMock(return_value=3)), patch.object(
            cli, "_run_and_dispose", new=lambda coro: coro
        ):
            code = cli.main(["purge-tokens"])

        assert code == 0
        assert "Removed 3 expired refresh token(s)" in capsys.readouterr().out

    def test_serve_command(self):
        with patch("uvicorn.run") as run:
            code = cli.main(["serve"])

        assert code == 0
        run.assert_called_once()
        assert run.call_args.args == ("main:app",)
