from tortoise import fields, models


class Item(models.Model):
    """
    The single keyed table. Every domain entity (inventory items, stock events,
    jobs, job templates, job history, file status) is one row here, addressed by
    its (partition, sort) pair, stored in the ``pk`` and ``sk`` columns.
    ``version`` starts at 1 and is bumped on every write so callers can make
    compare-and-swap updates.
    """
    id = fields.BigIntField(primary_key=True)
    partition = fields.CharField(max_length=512, source_field="pk")
    sort = fields.CharField(max_length=512, source_field="sk")
    attributes = fields.JSONField(default=dict)
    version = fields.IntField(default=1)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "items"
        unique_together = (("partition", "sort"),)
        indexes = [
            ("partition", "sort"),  # Partition queries ordered by sort key
            ("sort",),              # Cross-partition scans on a fixed sort key
        ]
