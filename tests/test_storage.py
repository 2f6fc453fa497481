from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from inventory_app.core.errors import ConfigurationError, ObjectMissing
from inventory_app.storage import BucketNotifier, LocalBlobStore, ObjectCreatedEvent, S3BlobStore, parse_s3_notification


def _s3_record(event_name, bucket, key, size=10):
    return {"eventName": event_name, "s3": {"bucket": {"name": bucket}, "object": {"key": key, "size": size, "eTag": "abc"}}}


class TestNotifier:
    def test_second_consumer_for_a_bucket_is_a_wiring_error(self):
        notifier = BucketNotifier()
        notifier.register("uploads", MagicMock())

        with pytest.raises(ConfigurationError):
            notifier.register("uploads", MagicMock())

    async def test_publish_routes_by_bucket(self):
        inventory, templates = MagicMock(), MagicMock()
        inventory.on_object_created = AsyncMock(return_value="inventory-result")
        templates.on_object_created = AsyncMock(return_value="template-result")
        notifier = BucketNotifier()
        notifier.register("uploads", inventory)
        notifier.register("templates", templates)

        result = await notifier.publish(ObjectCreatedEvent(bucket="templates", key="t.csv", size=1))

        assert result == "template-result"
        inventory.on_object_created.assert_not_called()

    async def test_unwired_bucket_is_dropped(self):
        assert await BucketNotifier().publish(ObjectCreatedEvent(bucket="other", key="x.csv", size=1)) is None

    async def test_local_put_publishes_exactly_once(self, tmp_path):
        consumer = MagicMock()
        consumer.on_object_created = AsyncMock()
        notifier = BucketNotifier()
        notifier.register("uploads", consumer)
        blobs = LocalBlobStore(tmp_path, notifier=notifier)

        await blobs.put_object("uploads", "inventory/a.csv", b"sku\n")

        consumer.on_object_created.assert_awaited_once()
        event = consumer.on_object_created.await_args.args[0]
        assert (event.bucket, event.key, event.size) == ("uploads", "inventory/a.csv", 4)


class TestS3Notifications:
    def test_only_object_created_records_are_kept(self):
        payload = {"Records": [
            _s3_record("ObjectCreated:Put", "uploads", "inventory/2024-01-01/abc/My+Stock+List.csv"),
            _s3_record("ObjectRemoved:Delete", "uploads", "inventory/old.csv"),
        ]}

        events = parse_s3_notification(payload)

        assert events == [ObjectCreatedEvent(
            bucket="uploads", key="inventory/2024-01-01/abc/My Stock List.csv", size=10, etag="abc",
        )]

    def test_test_event_without_records(self):
        assert parse_s3_notification({"Event": "s3:TestEvent"}) == []


class TestS3BlobStore:
    async def test_missing_key_raises_object_missing(self):
        client = MagicMock()
        client.get_object.side_effect = ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")

        with pytest.raises(ObjectMissing):
            await S3BlobStore(client=client).get_object("uploads", "gone.csv")

    async def test_presigned_put_url(self):
        client = MagicMock()
        client.generate_presigned_url.return_value = "https://s3.test/signed"

        url = await S3BlobStore(client=client).presign_upload("uploads", "a.csv", "text/csv", expires_in=60)

        assert url == "https://s3.test/signed"
        client.generate_presigned_url.assert_called_once_with(
            ClientMethod="put_object",
            Params={"Bucket": "uploads", "Key": "a.csv", "ContentType": "text/csv"},
            ExpiresIn=60,
        )
