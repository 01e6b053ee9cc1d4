import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Shipment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('tracking_code', models.CharField(editable=False, max_length=20, unique=True, verbose_name='Tracking code')),
                ('sender_name', models.CharField(max_length=150)),
                ('sender_phone', models.CharField(max_length=30)),
                ('sender_email', models.EmailField(blank=True, max_length=254)),
                ('sender_address', models.JSONField(default=dict)),
                ('sender_lat', models.FloatField(blank=True, null=True)),
                ('sender_lng', models.FloatField(blank=True, null=True)),
                ('recipient_name', models.CharField(max_length=150)),
                ('recipient_phone', models.CharField(max_length=30)),
                ('recipient_email', models.EmailField(blank=True, max_length=254)),
                ('recipient_address', models.JSONField(default=dict)),
                ('recipient_lat', models.FloatField(blank=True, null=True)),
                ('recipient_lng', models.FloatField(blank=True, null=True)),
                ('weight_kg', models.FloatField(verbose_name='Weight (kg)')),
                ('dimensions', models.JSONField(blank=True, default=dict)),
                ('service_type', models.CharField(choices=[('same_day', 'Same Day'), ('next_day', 'Next Day'), ('standard', 'Standard'), ('express', 'Express'), ('freight', 'Freight'), ('pallet', 'Pallet'), ('cross_border', 'Cross Border')], default='standard', max_length=20)),
                ('special_instructions', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('pending', 'Pending'), ('assigned', 'Assigned'), ('picked_up', 'Picked Up'), ('in_transit', 'In Transit'), ('out_for_delivery', 'Out for Delivery'), ('delivered', 'Delivered'), ('failed', 'Failed'), ('cancelled', 'Cancelled'), ('exception', 'Exception')], default='pending', max_length=20, verbose_name='Status')),
                ('distance_km', models.FloatField(default=0.0, verbose_name='Distance (km)')),
                ('price_quoted', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10, verbose_name='Quoted price')),
                ('price_final', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True, verbose_name='Final price')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('estimated_delivery', models.DateTimeField(blank=True, null=True)),
                ('actual_pickup', models.DateTimeField(blank=True, null=True)),
                ('actual_delivery', models.DateTimeField(blank=True, null=True)),
                ('assigned_courier', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_shipments', to=settings.AUTH_USER_MODEL, verbose_name='Courier')),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='shipments', to=settings.AUTH_USER_MODEL, verbose_name='Customer')),
            ],
            options={
                'verbose_name': 'Shipment',
                'verbose_name_plural': 'Shipments',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'created_at'], name='ship_status_created_idx'),
                    models.Index(fields=['assigned_courier', 'status'], name='ship_courier_status_idx'),
                    models.Index(fields=['customer', 'created_at'], name='ship_customer_created_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TrackingEvent',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('event_type', models.CharField(choices=[('created', 'Created'), ('assigned', 'Assigned'), ('picked_up', 'Picked Up'), ('in_transit', 'In Transit'), ('out_for_delivery', 'Out for Delivery'), ('delivered', 'Delivered'), ('failed', 'Failed'), ('cancelled', 'Cancelled'), ('exception', 'Exception'), ('location_update', 'Location Update')], max_length=30, verbose_name='Event type')),
                ('description', models.CharField(blank=True, max_length=255)),
                ('lat', models.FloatField(blank=True, null=True)),
                ('lng', models.FloatField(blank=True, null=True)),
                ('speed_kmh', models.FloatField(blank=True, null=True)),
                ('heading', models.FloatField(blank=True, null=True)),
                ('accuracy_m', models.FloatField(blank=True, null=True)),
                ('recorded_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('shipment', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tracking_events', to='logistics.shipment', verbose_name='Shipment')),
            ],
            options={
                'verbose_name': 'Tracking event',
                'verbose_name_plural': 'Tracking events',
                'ordering': ['recorded_at', 'id'],
                'indexes': [models.Index(fields=['shipment', 'recorded_at'], name='trk_shipment_recorded_idx')],
            },
        ),
    ]
