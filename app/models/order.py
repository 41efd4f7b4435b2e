from tortoise import fields, models

from app.enums.order_status import OrderStatus, OrderType


class Order(models.Model):
    id = fields.IntField(pk=True)
    auction = fields.ForeignKeyField("models.Auction", related_name="orders", null=True)
    product = fields.ForeignKeyField("models.Product", related_name="orders")
    user = fields.ForeignKeyField("models.User", related_name="orders")

    amount = fields.BigIntField()
    order_type = fields.CharEnumField(OrderType, default=OrderType.auction)
    status = fields.CharEnumField(OrderStatus, default=OrderStatus.pending)

    # Payment gateway reference (Stripe session, Razorpay payment id, ...)
    payment_reference = fields.CharField(max_length=255, null=True)

    created_at = fields.DatetimeField(auto_now_add=True)
    paid_at = fields.DatetimeField(null=True)

    class Meta:
        table = "orders"

    def __str__(self):
        return f"Order {self.id} - {self.amount} ({self.status})"
