from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='CatalogCommit',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=32)),
                ('product_id', models.CharField(blank=True, max_length=100)),
                ('revision', models.CharField(max_length=64)),
                ('message', models.TextField()),
                ('product_count', models.PositiveIntegerField()),
                ('committed_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ['-committed_at'],
            },
        ),
    ]
