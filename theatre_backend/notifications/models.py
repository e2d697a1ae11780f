from django.db import models


class Notification(models.Model):
    """Persisted inbox entry for a staff member, created when they are assigned."""

    staff = models.ForeignKey(
        'scheduling.Staff',
        on_delete=models.CASCADE,
        related_name='notifications',
    )
    operation = models.ForeignKey(
        'scheduling.Operation',
        on_delete=models.CASCADE,
        related_name='notifications',
    )
    notification_text = models.TextField()
    notification_time = models.DateTimeField(auto_now_add=True, db_index=True)
    is_read = models.BooleanField(default=False)

    class Meta:
        ordering = ['-notification_time', '-id']
        indexes = [
            models.Index(fields=['staff', 'is_read'], name='notif_staff_read_idx'),
        ]

    def __str__(self) -> str:
        return f"Notification #{self.id} for staff {self.staff_id}"
