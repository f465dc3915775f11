from django.db import models


class Product(models.Model):
    remote_id = models.BigIntegerField(unique=True)
    name = models.CharField(max_length=255, db_index=True)
    slug = models.CharField(max_length=255, blank=True)
    type = models.CharField(max_length=32, default='simple')
    status = models.CharField(max_length=32, db_index=True)
    featured = models.BooleanField(default=False, db_index=True)
    catalog_visibility = models.CharField(max_length=32, default='visible')
    description = models.TextField(blank=True)
    short_description = models.TextField(blank=True)
    sku = models.CharField(max_length=100, blank=True, db_index=True)

    # Money is kept as the remote's decimal string, never as a float
    price = models.CharField(max_length=32, blank=True)
    regular_price = models.CharField(max_length=32, blank=True)
    sale_price = models.CharField(max_length=32, blank=True)
    on_sale = models.BooleanField(default=False)
    purchasable = models.BooleanField(default=True)
    total_sales = models.IntegerField(default=0)

    virtual = models.BooleanField(default=False)
    downloadable = models.BooleanField(default=False)
    tax_status = models.CharField(max_length=32, default='taxable')
    tax_class = models.CharField(max_length=64, blank=True)

    manage_stock = models.BooleanField(default=False)
    stock_quantity = models.IntegerField(null=True, blank=True)
    stock_status = models.CharField(max_length=32, default='instock')
    backorders = models.CharField(max_length=16, default='no')
    backorders_allowed = models.BooleanField(default=False)
    backordered = models.BooleanField(default=False)
    sold_individually = models.BooleanField(default=False)

    weight = models.CharField(max_length=32, blank=True)
    dimensions = models.JSONField(default=dict, blank=True)
    shipping_required = models.BooleanField(default=True)
    shipping_taxable = models.BooleanField(default=True)
    shipping_class = models.CharField(max_length=100, blank=True)
    shipping_class_id = models.BigIntegerField(default=0)
    reviews_allowed = models.BooleanField(default=True)

    images = models.JSONField(default=list, blank=True)
    categories = models.JSONField(default=list, blank=True)
    tags = models.JSONField(default=list, blank=True)

    average_rating = models.CharField(max_length=16, default='0')
    rating_count = models.IntegerField(default=0)

    date_created = models.DateTimeField(db_index=True)
    date_modified = models.DateTimeField(db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date_created']

    def __str__(self):
        return f"{self.name} (#{self.remote_id})"


class Order(models.Model):
    remote_id = models.BigIntegerField(unique=True)
    number = models.CharField(max_length=64)
    order_key = models.CharField(max_length=64, blank=True)
    status = models.CharField(max_length=32, db_index=True)
    currency = models.CharField(max_length=8, blank=True)
    total = models.CharField(max_length=32)
    customer_id = models.BigIntegerField(default=0, db_index=True)
    customer_note = models.TextField(blank=True)
    billing = models.JSONField(default=dict, blank=True)
    shipping = models.JSONField(default=dict, blank=True)

    date_created = models.DateTimeField(db_index=True)
    # Remote modification time, never the local write time
    last_modified = models.DateTimeField(db_index=True)
    data_hash = models.CharField(max_length=64)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date_created']

    def __str__(self):
        return f"Order {self.number} ({self.status})"


class OrderLineItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='line_items')
    product_remote_id = models.BigIntegerField(db_index=True)
    name = models.CharField(max_length=255)
    sku = models.CharField(max_length=100, blank=True)
    quantity = models.PositiveIntegerField()
    price = models.CharField(max_length=32)
    total = models.CharField(max_length=32)

    def __str__(self):
        return f"{self.quantity} x {self.name}"


class SyncRun(models.Model):
    """One finished pass of the sync, catalog or retention job."""

    ORDERS = 'orders'
    CATALOG = 'catalog'
    RETENTION = 'retention'
    KIND_CHOICES = [
        (ORDERS, 'Order sync'),
        (CATALOG, 'Catalog sync'),
        (RETENTION, 'Retention'),
    ]

    COMPLETED = 'completed'
    ABORTED = 'aborted'
    STATUS_CHOICES = [
        (COMPLETED, 'Completed'),
        (ABORTED, 'Aborted'),
    ]

    kind = models.CharField(max_length=16, choices=KIND_CHOICES, db_index=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES)
    started_at = models.DateTimeField()
    finished_at = models.DateTimeField(db_index=True)
    stats = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ['-finished_at']

    def __str__(self):
        return f"{self.kind} {self.status} at {self.finished_at}"
