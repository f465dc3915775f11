from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('mirror', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='product',
            name='virtual',
            field=models.BooleanField(default=False),
        ),
        migrations.AddField(
            model_name='product',
            name='downloadable',
            field=models.BooleanField(default=False),
        ),
        migrations.AddField(
            model_name='product',
            name='tax_status',
            field=models.CharField(default='taxable', max_length=32),
        ),
        migrations.AddField(
            model_name='product',
            name='tax_class',
            field=models.CharField(blank=True, max_length=64),
        ),
        migrations.AddField(
            model_name='product',
            name='backorders',
            field=models.CharField(default='no', max_length=16),
        ),
        migrations.AddField(
            model_name='product',
            name='backorders_allowed',
            field=models.BooleanField(default=False),
        ),
        migrations.AddField(
            model_name='product',
            name='backordered',
            field=models.BooleanField(default=False),
        ),
        migrations.AddField(
            model_name='product',
            name='sold_individually',
            field=models.BooleanField(default=False),
        ),
        migrations.AddField(
            model_name='product',
            name='shipping_required',
            field=models.BooleanField(default=True),
        ),
        migrations.AddField(
            model_name='product',
            name='shipping_taxable',
            field=models.BooleanField(default=True),
        ),
        migrations.AddField(
            model_name='product',
            name='shipping_class',
            field=models.CharField(blank=True, max_length=100),
        ),
        migrations.AddField(
            model_name='product',
            name='shipping_class_id',
            field=models.BigIntegerField(default=0),
        ),
        migrations.AddField(
            model_name='product',
            name='reviews_allowed',
            field=models.BooleanField(default=True),
        ),
        migrations.CreateModel(
            name='SyncRun',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('orders', 'Order sync'), ('catalog', 'Catalog sync'), ('retention', 'Retention')], db_index=True, max_length=16)),
                ('status', models.CharField(choices=[('completed', 'Completed'), ('aborted', 'Aborted')], max_length=16)),
                ('started_at', models.DateTimeField()),
                ('finished_at', models.DateTimeField(db_index=True)),
                ('stats', models.JSONField(blank=True, default=dict)),
            ],
            options={
                'ordering': ['-finished_at'],
            },
        ),
    ]
