from tortoise import fields, models

from app.enums.auction_status import AuctionStatus


class Auction(models.Model):
    id = fields.IntField(pk=True)
    product = fields.ForeignKeyField("models.Product", related_name="auctions", on_delete=fields.RESTRICT)

    start_time = fields.DatetimeField()
    end_time = fields.DatetimeField(index=True)

    # Amounts in integer cents
    starting_bid = fields.BigIntField()
    current_bid = fields.BigIntField(null=True)
    current_bid_user = fields.ForeignKeyField(
        "models.User", related_name="leading_auctions", null=True, on_delete=fields.SET_NULL
    )

    status = fields.CharEnumField(AuctionStatus, default=AuctionStatus.open, index=True)

    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "auctions"

    def __str__(self):
        return f"Auction {self.id} ({self.status})"
