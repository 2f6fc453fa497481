import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch, AsyncMock

from inventory_app.core.errors import AlreadyExists, NotFound, ValidationError
from inventory_app.dependencies import get_notifier
from inventory_app.main import app
from inventory_app.pipelines.base import FileStatus, ProcessingResult
from inventory_app.schemas.inventory import InventoryItemResponse
from inventory_app.schemas.job import JobResponse, JobSyncStatus
from inventory_app.schemas.response import SuccessResponse
from inventory_app.schemas.stock import MovementKind, MovementResponse
from inventory_app.schemas.upload import UploadUrlResponse
from inventory_app.storage import BucketNotifier


@pytest.fixture
def client():
    return TestClient(app)


def _job(status):
    return JobResponse(job_id="abc123", name="Rewire", status=status, created_at="2024-03-01T09:00:00.000000Z",
                       external_id="J1" if status == JobSyncStatus.SYNCED else None)


def _movement(kind=MovementKind.STOCK, quantity_after=15):
    return MovementResponse(event_id="ev-1", item_id="bolt", kind=kind, quantity=5, quantity_after=quantity_after,
                            created_at="2024-03-01T09:00:00.000000Z")


class TestInventoryRoutes:
    def test_list_inventory(self, client):
        with patch('inventory_app.api.v1.inventory.list_inventory') as mock_list:
            mock_list.return_value = [InventoryItemResponse(item_id="bolt", sku="BOLT", name="Bolt", quantity=3)]

            response = client.get("/inventory", params={"low_stock": "true", "category": "fixings"})

            assert response.status_code == 200
            body = response.json()
            assert body["success"] is True
            assert body["data"]["count"] == 1
            query = mock_list.call_args.args[1]
            assert (query.low_stock, query.category) == (True, "fixings")

    def test_unknown_item_is_404_envelope(self, client):
        with patch('inventory_app.api.v1.inventory.list_inventory', new=AsyncMock(side_effect=NotFound("no item"))):
            response = client.get("/inventory", params={"item_id": "ghost"})

            assert response.status_code == 404
            body = response.json()
            assert body["success"] is False
            assert body["error"]["code"] == "not_found"
            assert body["request_id"]


class TestStockRoutes:
    def test_add_stock(self, client):
        with patch('inventory_app.api.v1.stock.record_stock') as mock_stock:
            mock_stock.return_value = _movement()

            response = client.post("/stock", json={"item_id": "bolt", "quantity": 5, "request_id": "po-1"})

            assert response.status_code == 201
            assert response.json()["data"]["quantity_after"] == 15
            assert mock_stock.call_args.args[1].request_id == "po-1"

    def test_zero_quantity_is_rejected(self, client):
        response = client.post("/stock", json={"item_id": "bolt", "quantity": 0})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    def test_insufficient_stock_is_client_error(self, client):
        with patch('inventory_app.api.v1.stock.record_consumption',
                   new=AsyncMock(side_effect=ValidationError("Insufficient inventory"))):
            response = client.post("/consume", json={"item_id": "bolt", "quantity": 50})

            assert response.status_code == 400
            assert response.json()["error"]["message"] == "Insufficient inventory"


class TestJobRoutes:
    def test_synced_job_is_201(self, client):
        with patch('inventory_app.api.v1.jobs.create_job') as mock_create:
            mock_create.return_value = _job(JobSyncStatus.SYNCED)

            response = client.post("/jobs", json={"name": "Rewire"})

            assert response.status_code == 201
            assert response.json()["data"]["external_id"] == "J1"

    def test_pending_job_is_202(self, client):
        with patch('inventory_app.api.v1.jobs.create_job') as mock_create:
            mock_create.return_value = _job(JobSyncStatus.PENDING)

            response = client.post("/jobs", json={"name": "Rewire"})

            assert response.status_code == 202
            assert response.json()["data"]["status"] == "pending"

    def test_due_date_before_start_date(self, client):
        response = client.post("/jobs", json={"name": "Rewire", "start_date": "2024-03-05", "due_date": "2024-03-01"})
        assert response.status_code == 400

    def test_get_job(self, client):
        with patch('inventory_app.api.v1.jobs.get_job') as mock_get:
            mock_get.return_value = _job(JobSyncStatus.SYNCED)

            response = client.get("/jobs/abc123")

            assert response.status_code == 200
            assert response.json()["data"]["job_id"] == "abc123"


class TestTemplateAndHistoryRoutes:
    def test_duplicate_template_is_409(self, client):
        with patch('inventory_app.api.v1.job_templates.create_template',
                   new=AsyncMock(side_effect=AlreadyExists("exists"))):
            response = client.post("/job-templates", json={"name": "Bathroom", "lines": []})
            assert response.status_code == 409

    def test_history_query_params(self, client):
        with patch('inventory_app.api.v1.job_history.query_history') as mock_history:
            mock_history.return_value = []

            response = client.get("/job-history", params={"job_id": "abc123", "limit": 5})

            assert response.status_code == 200
            query = mock_history.call_args.args[1]
            assert (query.job_id, query.limit) == ("abc123", 5)


class TestUploadAndEventRoutes:
    def test_upload_url(self, client):
        with patch('inventory_app.api.v1.uploads.create_upload_url') as mock_url:
            mock_url.return_value = UploadUrlResponse(upload_url="https://s3.test/put", bucket="inventory-uploads",
                                                      key="inventory/k.csv", file_id="f1", expires_in=300)

            response = client.post("/upload-url", json={"filename": "stock.csv"})

            assert response.status_code == 200
            assert response.json()["data"]["upload_url"] == "https://s3.test/put"
            assert mock_url.call_args.args[1] == "inventory-uploads"

    def test_s3_notification_is_dispatched(self, client):
        consumer = AsyncMock()
        consumer.on_object_created.return_value = ProcessingResult(
            file_id="f1", bucket="inventory-uploads", key="inventory/k.csv", pipeline="inventory",
            status=FileStatus.COMPLETED, success_count=2,
        )
        notifier = BucketNotifier()
        notifier.register("inventory-uploads", consumer)
        app.dependency_overrides[get_notifier] = lambda: notifier
        try:
            response = client.post("/events/object-created", json={"Records": [{
                "eventName": "ObjectCreated:Put",
                "s3": {"bucket": {"name": "inventory-uploads"}, "object": {"key": "inventory/k.csv", "size": 20}},
            }]})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["received"] == 1
        assert data["results"][0]["success_count"] == 2


class TestResponseEnvelope:
    def test_success_envelope_carries_a_fresh_request_id(self):
        first, second = SuccessResponse(data={"count": 1}), SuccessResponse()

        assert first.model_dump() == {"success": True, "request_id": first.request_id, "data": {"count": 1}}
        assert len(first.request_id) == 32 and first.request_id != second.request_id
        assert second.data is None

    def test_error_envelope_uses_the_same_request_id_shape(self, client):
        with patch('inventory_app.api.v1.inventory.list_inventory', new=AsyncMock(side_effect=NotFound("no item"))):
            response = client.get("/inventory", params={"item_id": "ghost"})

            body = response.json()
            assert response.status_code == 404
            assert body["success"] is False
            assert len(body["request_id"]) == 32
