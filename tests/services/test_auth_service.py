from __future__ import annotations

import json
from pathlib import Path

import pytest

from exchange_app.exceptions.init_data import Expired, SignatureMismatch
from exchange_app.repositories.store import JsonStore
from exchange_app.services.auth_service import AuthService
from tests.helpers import TEST_BOT_TOKEN, generate_init_data

NOW = 1_700_000_000


def build_service(tmp_path: Path, **overrides: object) -> AuthService:
    values: dict[str, object] = {
        "store": JsonStore(tmp_path / "store.json"),
        "bot_token": TEST_BOT_TOKEN,
        "max_age_seconds": 3600,
        "owner_ids": {777},
        "admin_web_key": "admin-key",
    }
    values.update(overrides)
    return AuthService(**values)  # type: ignore[arg-type]


def test_authenticate_registers_user(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    init_data = generate_init_data(overrides={"auth_date": str(NOW)})

    context = service.authenticate(init_data, now=NOW + 10)

    assert context.identity.user_id == 123456
    assert context.user.username == "john_doe"
    assert context.is_owner is False
    assert "123456" in service._store.read().users


def test_authenticate_flags_owner(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    init_data = generate_init_data(
        overrides={"auth_date": str(NOW)},
        user={"id": 777},
    )

    assert service.authenticate(init_data, now=NOW).is_owner is True


def test_authenticate_respects_configured_window(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    init_data = generate_init_data(overrides={"auth_date": str(NOW)})

    with pytest.raises(Expired):
        service.authenticate(init_data, now=NOW + 3601)


def test_failed_verification_does_not_register(tmp_path: Path) -> None:
    service = build_service(tmp_path)
    init_data = generate_init_data(
        bot_token="other:token",
        overrides={"auth_date": str(NOW), "user": json.dumps({"id": 1})},
    )

    with pytest.raises(SignatureMismatch):
        service.authenticate(init_data, now=NOW)

    assert service._store.read().users == {}


def test_check_admin_key(tmp_path: Path) -> None:
    service = build_service(tmp_path)

    assert service.check_admin_key("admin-key") is True
    assert service.check_admin_key("wrong") is False
    assert service.check_admin_key(None) is False
    assert service.check_admin_key("ключ") is False


def test_admin_key_disabled_when_unset(tmp_path: Path) -> None:
    service = build_service(tmp_path, admin_web_key=None)

    assert service.check_admin_key("") is False
    assert service.check_admin_key("anything") is False
