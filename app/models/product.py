from tortoise import fields, models


class Product(models.Model):
    id = fields.IntField(pk=True)
    brand = fields.CharField(max_length=100)
    name = fields.CharField(max_length=255)
    sku = fields.CharField(max_length=100, null=True)
    size = fields.CharField(max_length=20, null=True)
    description = fields.TextField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "products"

    def __str__(self):
        return f"{self.brand} {self.name}"
