from __future__ import annotations

from ..extensions import db


class Expense(db.Model):
    """Operating expense; only feeds profit aggregation."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_business_date", "business_id", "occurred_on"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    occurred_on = db.Column(db.Date, nullable=False)
    category = db.Column(db.String(128), nullable=False, default="General")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "amount_cents": self.amount_cents,
            "occurred_on": self.occurred_on.isoformat() if self.occurred_on else None,
            "category": self.category,
        }


class ExpenseCategory(db.Model):
    __tablename__ = "expense_categories"
    __table_args__ = (
        db.UniqueConstraint("business_id", "name", name="uq_expense_categories_business_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)

    def to_dict(self) -> dict:
        return {"id": self.id, "business_id": self.business_id, "name": self.name}
