from __future__ import annotations

import pytest

from pseudotx.db.helpers import _validate_identifier, build_rpc, build_select, build_write
from pseudotx.db.models import DeleteOp, InsertOp, UpdateOp


class TestValidateIdentifier:

    @pytest.mark.parametrize("name", ["wallets", "_private", "user_id2"])
    def test_accepts_plain_identifiers(self, name: str) -> None:
        assert _validate_identifier(name) == name

    @pytest.mark.parametrize("name", ["", "1abc", "a-b", "'; DROP TABLE wallets--", "a" * 64])
    def test_rejects_unsafe_identifiers(self, name: str) -> None:
        with pytest.raises(ValueError):
            _validate_identifier(name, "collection")

    def test_rejects_non_strings(self) -> None:
        with pytest.raises(TypeError):
            _validate_identifier(42)  # type: ignore[arg-type]


def test_select_uses_bound_parameters_and_sorted_keys() -> None:
    stmt, params = build_select("wallets", {"user_id": "alice", "currency": "USD"})

    assert str(stmt) == (
        "SELECT * FROM wallets WHERE currency = :where_0 AND user_id = :where_1 LIMIT 2"
    )
    assert params == {"where_0": "USD", "where_1": "alice"}


def test_none_filter_value_becomes_is_null() -> None:
    stmt, params = build_select("transactions", {"recipient_id": None, "user_id": "a"})

    assert "recipient_id IS NULL" in str(stmt)
    assert params == {"where_1": "a"}


def test_insert_statement() -> None:
    stmt, params = build_write(InsertOp("transactions", {"user_id": "a", "amount": 5}))

    assert str(stmt) == "INSERT INTO transactions (user_id, amount) VALUES (:set_user_id, :set_amount)"
    assert params == {"set_user_id": "a", "set_amount": 5}


def test_update_keeps_set_and_where_parameters_apart() -> None:
    stmt, params = build_write(UpdateOp("wallets", {"balance": 1, "id": 3}, match={"id": 3}))

    assert str(stmt) == "UPDATE wallets SET balance = :set_balance, id = :set_id WHERE id = :where_0"
    assert params == {"set_balance": 1, "set_id": 3, "where_0": 3}


def test_delete_statement() -> None:
    stmt, params = build_write(DeleteOp("wallets", match={"user_id": "a"}))

    assert str(stmt) == "DELETE FROM wallets WHERE user_id = :where_0"
    assert params == {"where_0": "a"}


def test_column_names_are_validated() -> None:
    with pytest.raises(ValueError):
        build_write(InsertOp("wallets", {"balance; --": 1}))


def test_rpc_statement() -> None:
    assert str(build_rpc("begin_transaction")) == "SELECT begin_transaction()"
    with pytest.raises(ValueError):
        build_rpc("begin_transaction(); DROP")
