from django.db import models


class CatalogCommit(models.Model):
    action = models.CharField(max_length=32)
    product_id = models.CharField(max_length=100, blank=True)
    revision = models.CharField(max_length=64)
    message = models.TextField()
    product_count = models.PositiveIntegerField()
    committed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-committed_at']

    def __str__(self):
        return f"{self.action} {self.product_id} -> {self.revision} ({self.committed_at})"
