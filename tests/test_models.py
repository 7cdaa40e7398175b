"""
Tests for Cryb models

Test strategy:
1. Unit tests for the pydantic models and their validators
2. Backend rows (JSON-shaped dicts) must validate into models unchanged
3. No backend access here
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from cryb.models.house import (
    DEFAULT_DISPLAY_NAME,
    House,
    HouseCreate,
    ProfileCreate,
    User,
)
from cryb.models.records import (
    EXPENSE_CATEGORIES,
    BalanceSummary,
    Chore,
    ChoreUpdate,
    Expense,
    ExpenseCreate,
    Note,
    NoteCreate,
    RecurrenceType,
)


NOW = datetime(2024, 12, 1, 12, 0, tzinfo=timezone.utc)


class TestHouseModels:
    """Tests for users and houses."""

    def test_user_from_backend_row(self):
        """String ids and timestamps from the backend are parsed."""
        user_id, house_id = uuid4(), uuid4()
        user = User.model_validate({
            "id": str(user_id),
            "email": "alice@example.com",
            "display_name": "Alice",
            "house_id": str(house_id),
            "created_at": "2024-12-01T12:00:00+00:00",
        })
        assert user.id == user_id
        assert user.house_id == house_id
        assert user.in_house is True

    def test_user_name_falls_back(self):
        """A profile without a display name shows the default name."""
        user = User(id=uuid4(), created_at=NOW)
        assert user.name == DEFAULT_DISPLAY_NAME
        assert user.in_house is False

    def test_house_invite_code_alias(self):
        house = House(id=uuid4(), name="  Maple  ", code="ABC123", created_at=NOW)
        assert house.name == "Maple"
        assert house.invite_code == "ABC123"

    def test_house_create_rejects_empty_name(self):
        """Test that a blank house name is rejected."""
        with pytest.raises(ValueError):
            HouseCreate(name="   ", code="ABC123", created_by=uuid4())

    def test_profile_create_defaults(self):
        profile = ProfileCreate(id=uuid4(), email="a@example.com")
        dumped = profile.model_dump(mode="json")
        assert dumped["display_name"] == "User"
        assert dumped["house_id"] is None


class TestChoreModels:
    """Tests for chore models."""

    def test_null_recurrence_becomes_none(self):
        """Older rows store NULL recurrence."""
        chore = Chore(
            id=uuid4(),
            title="Bins",
            house_id=uuid4(),
            created_by=uuid4(),
            created_at=NOW,
            recurrence=None,
        )
        assert chore.recurrence == RecurrenceType.NONE
        assert chore.is_completed is False

    def test_recurrence_display_names(self):
        assert RecurrenceType.NONE.display_name == "No Recurrence"
        assert RecurrenceType.WEEKLY.display_name == "Weekly"

    def test_chore_rejects_negative_points(self):
        with pytest.raises(ValueError):
            Chore(
                id=uuid4(),
                title="Bins",
                house_id=uuid4(),
                created_by=uuid4(),
                created_at=NOW,
                points=-1,
            )

    def test_update_only_dumps_set_fields(self):
        """Unset fields must not overwrite stored values."""
        update = ChoreUpdate(is_completed=True)
        assert update.model_dump(exclude_unset=True) == {"is_completed": True}

    def test_update_can_clear_assignee(self):
        update = ChoreUpdate(assigned_user_id=None)
        assert update.model_dump(exclude_unset=True) == {"assigned_user_id": None}


class TestExpenseModels:
    """Tests for expense models."""

    def test_expense_from_backend_row(self):
        """Amounts arrive as strings or numbers and become Decimal."""
        payer = uuid4()
        expense = Expense.model_validate({
            "id": str(uuid4()),
            "title": "Pizza",
            "amount": "60.00",
            "paid_by": str(payer),
            "house_id": str(uuid4()),
            "created_at": NOW.isoformat(),
            "shared_with": None,
        })
        assert expense.amount == Decimal("60.00")
        assert expense.shared_with == []
        assert expense.share_count == 1

    def test_shared_with_is_deduplicated(self):
        """A sharer listed twice is counted once."""
        other = uuid4()
        expense = Expense(
            id=uuid4(),
            title="Pizza",
            amount=Decimal("60"),
            paid_by=uuid4(),
            house_id=uuid4(),
            created_at=NOW,
            shared_with=[other, other],
        )
        assert expense.shared_with == [other]
        assert expense.share_count == 2
        assert expense.share_amount == Decimal("30")

    def test_expense_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            ExpenseCreate(title="Refund", amount=Decimal("-5.00"))

    def test_expense_create_rejects_sub_cent_amount(self):
        with pytest.raises(ValueError):
            ExpenseCreate(title="Gum", amount=Decimal("1.005"))

    def test_categories(self):
        assert EXPENSE_CATEGORIES[0] == "General"
        assert "Utilities" in EXPENSE_CATEGORIES


class TestNoteModels:
    """Tests for note models."""

    def test_tags_deduplicated_in_order(self):
        note = NoteCreate(title="Wifi", tags=["home", "wifi", "home"])
        assert note.tags == ["home", "wifi"]

    def test_note_defaults(self):
        note = Note(
            id=uuid4(),
            title="Wifi",
            house_id=uuid4(),
            created_by=uuid4(),
            created_at=NOW,
        )
        assert note.content == ""
        assert note.is_pinned is False
        assert note.tags == []


class TestBalanceSummary:
    """Tests for the derived balance model."""

    def test_from_totals_derives_net(self):
        summary = BalanceSummary.from_totals(Decimal("20"), Decimal("50"))
        assert summary.net_balance == Decimal("30")

    def test_inconsistent_net_rejected(self):
        """net_balance must equal you_are_owed - you_owe."""
        with pytest.raises(ValueError, match="net_balance"):
            BalanceSummary(
                you_owe=Decimal("1"),
                you_are_owed=Decimal("2"),
                net_balance=Decimal("5"),
            )

    def test_rounded_keeps_identity(self):
        """Rounding each part first keeps net consistent at cent precision."""
        summary = BalanceSummary.from_totals(
            you_owe=Decimal("10") / 3,
            you_are_owed=Decimal("20") / 3,
        )
        rounded = summary.rounded()
        assert rounded.you_owe == Decimal("3.33")
        assert rounded.you_are_owed == Decimal("6.67")
        assert rounded.net_balance == Decimal("3.34")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
