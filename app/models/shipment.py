from tortoise import fields, models

from app.enums.shipment_status import ShipmentStatus


class Shipment(models.Model):
    id = fields.IntField(pk=True)
    order = fields.OneToOneField("models.Order", related_name="shipment")

    carrier = fields.CharField(max_length=20, null=True)
    service_code = fields.CharField(max_length=50, null=True)
    tracking_number = fields.CharField(max_length=100, null=True, index=True)
    label_url = fields.TextField(null=True)
    cost = fields.DecimalField(max_digits=10, decimal_places=2, null=True)
    currency = fields.CharField(max_length=3, default="USD")

    weight = fields.FloatField(null=True)
    box_length = fields.IntField(null=True)
    box_width = fields.IntField(null=True)
    box_height = fields.IntField(null=True)

    status = fields.CharEnumField(ShipmentStatus, default=ShipmentStatus.pending)

    # Recipient
    to_name = fields.CharField(max_length=255, null=True)
    to_line1 = fields.CharField(max_length=255, null=True)
    to_line2 = fields.CharField(max_length=255, null=True)
    to_city = fields.CharField(max_length=100, null=True)
    to_state = fields.CharField(max_length=50, null=True)
    to_zip = fields.CharField(max_length=20, null=True)
    to_country = fields.CharField(max_length=2, null=True)
    to_phone = fields.CharField(max_length=30, null=True)

    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "shipments"

    def __str__(self):
        return f"Shipment {self.id} - {self.carrier or 'unassigned'} ({self.status})"
