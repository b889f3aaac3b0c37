"""
Add celery-beat schedule for the subscription lifecycle job.

Creates the periodic task for run_subscription_lifecycle, which moves
expired subscriptions into their grace window, closes finished grace
windows and sends renewal reminders. Runs every 720 minutes by default;
operators can change the interval in the admin.
"""

from django.db import migrations

TASK_NAME = "Subscription Lifecycle"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for the lifecycle job."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=720,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "payments.tasks.run_subscription_lifecycle",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Expires subscriptions past end_date, closes grace windows and "
                "sends 3-day / 1-day / expired notices."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
