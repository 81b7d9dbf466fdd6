import psycopg2
import pytest

from nappbot.modules.errors import InsufficientFunds, StoreUnavailable
from nappbot.modules.ledger import DatabaseLedger, LOSS, WIN, next_streak


@pytest.mark.parametrize("current,result,expected", [
    (0, WIN, 1),
    (3, WIN, 4),
    (-2, WIN, 1),
    (0, LOSS, -1),
    (-3, LOSS, -4),
    (5, LOSS, -1),
])
def test_streak_extends_on_same_sign_and_resets_on_flip(current, result, expected):
    assert next_streak(current, result) == expected


def test_push_never_moves_a_streak():
    with pytest.raises(ValueError):
        next_streak(2, "push")


class FakeDatabase:
    def __init__(self):
        self.balance = 500
        self.streak = 0
        self.down = False
        self.active = []

    def _check(self):
        if self.down:
            raise psycopg2.OperationalError("connection refused")

    def get_balance(self, user_id):
        self._check()
        return self.balance

    def adjust_balance(self, user_id, delta):
        self._check()
        self.balance += delta
        return {"balance": self.balance, "bank_balance": 0}

    def debit_balance(self, user_id, amount):
        self._check()
        if self.balance < amount:
            return None
        self.balance -= amount
        return self.balance

    def get_streak(self, user_id):
        self._check()
        return self.streak

    def update_streak(self, user_id, result):
        self._check()
        self.streak = next_streak(self.streak, result)
        return self.streak

    def mark_active(self, user_id):
        self._check()
        self.active.append(user_id)


def test_database_ledger_passes_calls_through():
    db = FakeDatabase()
    ledger = DatabaseLedger(lambda: db)
    assert ledger.get_balance(42) == 500
    ledger.adjust_balance(42, -20)
    assert db.balance == 480
    assert ledger.update_streak("42", WIN) == 1
    assert ledger.get_streak("42") == 1
    ledger.mark_active(42)
    assert db.active == ["42"]


def test_database_errors_become_store_unavailable():
    db = FakeDatabase()
    db.down = True
    ledger = DatabaseLedger(lambda: db)
    with pytest.raises(StoreUnavailable) as err:
        ledger.adjust_balance("42", 10)
    assert err.value.operation == "adjust_balance"
    assert isinstance(err.value.__cause__, psycopg2.OperationalError)


def test_unreachable_database_on_connect_is_store_unavailable():
    def factory():
        raise psycopg2.OperationalError("no route to host")

    with pytest.raises(StoreUnavailable):
        DatabaseLedger(factory).get_balance("42")


def test_debit_takes_the_stake_and_reports_the_new_balance():
    db = FakeDatabase()
    ledger = DatabaseLedger(lambda: db)
    assert ledger.debit("42", 200) == 300
    assert ledger.adjust_balance("42", 50) == 350


def test_debit_short_of_funds_raises_and_leaves_the_balance():
    db = FakeDatabase()
    ledger = DatabaseLedger(lambda: db)
    with pytest.raises(InsufficientFunds) as err:
        ledger.debit("42", 501)
    assert (err.value.need, err.value.have) == (501, 500)
    assert db.balance == 500


def test_debit_on_a_dead_database_is_store_unavailable():
    db = FakeDatabase()
    db.down = True
    with pytest.raises(StoreUnavailable) as err:
        DatabaseLedger(lambda: db).debit("42", 10)
    assert err.value.operation == "debit"
