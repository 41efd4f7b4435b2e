from tortoise import fields
from tortoise.models import Model


class Bid(Model):
    """Append-only: bids are never updated or deleted."""
    id = fields.IntField(pk=True)

    auction = fields.ForeignKeyField("models.Auction", related_name="bids", on_delete=fields.RESTRICT)
    user = fields.ForeignKeyField("models.User", related_name="bids", on_delete=fields.RESTRICT)

    amount = fields.BigIntField()

    created_at = fields.DatetimeField(index=True)

    class Meta:
        table = "bids"
        ordering = ["-created_at", "-id"]

    async def save(self, *args, **kwargs):
        if self.amount <= 0:
            raise ValueError("Amount must be greater than 0")
        await super().save(*args, **kwargs)
