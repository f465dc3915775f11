import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('remote_id', models.BigIntegerField(unique=True)),
                ('name', models.CharField(db_index=True, max_length=255)),
                ('slug', models.CharField(blank=True, max_length=255)),
                ('type', models.CharField(default='simple', max_length=32)),
                ('status', models.CharField(db_index=True, max_length=32)),
                ('featured', models.BooleanField(db_index=True, default=False)),
                ('catalog_visibility', models.CharField(default='visible', max_length=32)),
                ('description', models.TextField(blank=True)),
                ('short_description', models.TextField(blank=True)),
                ('sku', models.CharField(blank=True, db_index=True, max_length=100)),
                ('price', models.CharField(blank=True, max_length=32)),
                ('regular_price', models.CharField(blank=True, max_length=32)),
                ('sale_price', models.CharField(blank=True, max_length=32)),
                ('on_sale', models.BooleanField(default=False)),
                ('purchasable', models.BooleanField(default=True)),
                ('total_sales', models.IntegerField(default=0)),
                ('manage_stock', models.BooleanField(default=False)),
                ('stock_quantity', models.IntegerField(blank=True, null=True)),
                ('stock_status', models.CharField(default='instock', max_length=32)),
                ('weight', models.CharField(blank=True, max_length=32)),
                ('dimensions', models.JSONField(blank=True, default=dict)),
                ('images', models.JSONField(blank=True, default=list)),
                ('categories', models.JSONField(blank=True, default=list)),
                ('tags', models.JSONField(blank=True, default=list)),
                ('average_rating', models.CharField(default='0', max_length=16)),
                ('rating_count', models.IntegerField(default=0)),
                ('date_created', models.DateTimeField(db_index=True)),
                ('date_modified', models.DateTimeField(db_index=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-date_created'],
            },
        ),
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('remote_id', models.BigIntegerField(unique=True)),
                ('number', models.CharField(max_length=64)),
                ('order_key', models.CharField(blank=True, max_length=64)),
                ('status', models.CharField(db_index=True, max_length=32)),
                ('currency', models.CharField(blank=True, max_length=8)),
                ('total', models.CharField(max_length=32)),
                ('customer_id', models.BigIntegerField(db_index=True, default=0)),
                ('customer_note', models.TextField(blank=True)),
                ('billing', models.JSONField(blank=True, default=dict)),
                ('shipping', models.JSONField(blank=True, default=dict)),
                ('date_created', models.DateTimeField(db_index=True)),
                ('last_modified', models.DateTimeField(db_index=True)),
                ('data_hash', models.CharField(max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-date_created'],
            },
        ),
        migrations.CreateModel(
            name='OrderLineItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_remote_id', models.BigIntegerField(db_index=True)),
                ('name', models.CharField(max_length=255)),
                ('sku', models.CharField(blank=True, max_length=100)),
                ('quantity', models.PositiveIntegerField()),
                ('price', models.CharField(max_length=32)),
                ('total', models.CharField(max_length=32)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='line_items', to='mirror.order')),
            ],
        ),
    ]
