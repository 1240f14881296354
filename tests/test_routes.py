"""
API tests: response envelopes, error mapping and the detection / imputation
flows through FastAPI.
"""

from unittest.mock import MagicMock

from fluxqc.models.imputation_result import ImputationResult


def _ta_column_id(client, dataset_id):
    columns = client.get(f"/thresholds/datasets/{dataset_id}", params={"column_name": "Ta"}).json()["data"]
    return columns[0]["id"]


# ============================================================================
# ENVELOPE & ERRORS
# ============================================================================

class TestEnvelope:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_success_shape(self, client):
        body = client.get("/detection/methods").json()
        assert body["success"] is True
        assert body["error"] is None
        assert body["data"][0]["id"] == "THRESHOLD_STATIC"
        assert body["data"][1]["params"][0]["key"] == "threshold"

    def test_not_found(self, client):
        response = client.get("/detection/results/999/details")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "DetectionResult 999 not found"}

    def test_validation_error(self, client):
        response = client.post("/thresholds/configs", json={
            "scope_type": "APP", "detection_method": "LOF",
        })
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_request_schema_error(self, client):
        response = client.post("/detection/execute", json={"version_id": 1})
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert "dataset_id" in body["error"]

    def test_unknown_update_field_rejected(self, client, ta_dataset):
        dataset, _ = ta_dataset
        column_id = _ta_column_id(client, dataset.id)
        response = client.patch(f"/thresholds/columns/{column_id}", json={"lower": 1})
        assert response.status_code == 422

    def test_unavailable_method_conflict(self, client, ta_dataset):
        dataset, version = ta_dataset
        response = client.post("/detection/execute", json={
            "dataset_id": dataset.id, "version_id": version.id, "method_id": "ISOLATION_FOREST",
        })
        assert response.status_code == 409

    def test_no_thresholds_is_unprocessable(self, client, ta_dataset):
        dataset, version = ta_dataset
        response = client.post("/detection/execute", json={"dataset_id": dataset.id, "version_id": version.id})
        assert response.status_code == 422
        assert "thresholds" in response.json()["error"]


# ============================================================================
# DATASETS
# ============================================================================

class TestDatasetRoutes:
    def test_register_and_list(self, client, write_csv):
        site = client.post("/sites", json={"site_name": "Yucheng", "latitude": 36.8}).json()["data"]
        path = write_csv("TIMESTAMP,Ta\n2024-01-01 00:00,1")

        dataset = client.post("/datasets", json={
            "site_id": site["id"], "dataset_name": "flux_2024", "file_path": path,
        }).json()["data"]
        assert dataset["time_column"] == "TIMESTAMP"

        versions = client.get(f"/datasets/{dataset['id']}/versions").json()["data"]
        assert [v["stage_type"] for v in versions] == ["RAW"]
        assert [d["id"] for d in client.get("/datasets", params={"site_id": site["id"]}).json()["data"]] == [dataset["id"]]

    def test_bad_latitude(self, client):
        assert client.post("/sites", json={"site_name": "Pole", "latitude": 91}).status_code == 400


# ============================================================================
# THRESHOLDS
# ============================================================================

class TestThresholdRoutes:
    def test_patch_and_resolve(self, client, ta_dataset):
        dataset, _ = ta_dataset
        column_id = _ta_column_id(client, dataset.id)

        patched = client.patch(f"/thresholds/columns/{column_id}", json={"min_threshold": -40, "max_threshold": 50})
        assert patched.json()["data"]["min_threshold"] == -40

        resolved = client.get("/thresholds/resolve", params={"column_name": "Ta", "dataset_id": dataset.id}).json()["data"]
        assert resolved["source"] == "DATASET"
        assert resolved["max_threshold"] == 50

    def test_inverted_patch(self, client, ta_dataset):
        dataset, _ = ta_dataset
        column_id = _ta_column_id(client, dataset.id)
        response = client.patch(f"/thresholds/columns/{column_id}", json={"min_threshold": 60, "max_threshold": 50})
        assert response.status_code == 400

    def test_batch(self, client, ta_dataset):
        dataset, _ = ta_dataset
        column_id = _ta_column_id(client, dataset.id)
        response = client.post("/thresholds/batch", json=[{"id": column_id, "min_threshold": -40}])
        assert response.json()["data"] == {"updated_count": 1}

    def test_templates(self, client, ta_dataset):
        dataset, _ = ta_dataset
        templates = client.get("/thresholds/templates").json()["data"]
        assert set(templates) == {"standard", "strict"}

        applied = client.post(f"/thresholds/datasets/{dataset.id}/apply-template",
                              json={"template_name": "standard"}).json()["data"]
        assert applied == {"applied_count": 1}

    def test_config_lifecycle(self, client, ta_dataset):
        dataset, _ = ta_dataset
        created = client.post("/thresholds/configs", json={
            "scope_type": "SITE", "scope_id": dataset.site_id, "column_name": "Ta",
            "detection_method": "THRESHOLD_STATIC", "method_params": {"min_value": -30, "max_value": 45},
        }).json()["data"]

        listed = client.get("/thresholds/configs", params={"scope_type": "SITE"}).json()["data"]
        assert [c["id"] for c in listed] == [created["id"]]

        client.patch(f"/thresholds/configs/{created['id']}", json={"priority": 2})
        assert client.delete(f"/thresholds/configs/{created['id']}").json() == {
            "success": True, "data": None, "error": None,
        }
        assert client.get("/thresholds/configs").json()["data"] == []


# ============================================================================
# DETECTION & IMPUTATION FLOWS
# ============================================================================

class TestDetectionFlow:
    def test_execute_and_browse(self, client, ta_dataset):
        dataset, version = ta_dataset
        column_id = _ta_column_id(client, dataset.id)
        client.patch(f"/thresholds/columns/{column_id}", json={"min_threshold": -40, "max_threshold": 50})

        summary = client.post("/detection/execute", json={
            "dataset_id": dataset.id, "version_id": version.id,
        }).json()["data"]
        assert summary["outlier_count"] == 2
        assert summary["outlier_rate"] == 0.5

        result_id = summary["result_id"]
        page = client.get(f"/detection/results/{result_id}/details", params={"limit": 1}).json()["data"]
        assert page["total"] == 2
        assert page["details"][0]["outlier_type"] == "BELOW_MIN"

        stats = client.get(f"/detection/results/{result_id}/column-stats").json()["data"]
        assert stats[0]["threshold_source"] == "DATASET"

        results = client.get(f"/detection/datasets/{dataset.id}/results").json()["data"]
        assert results[0]["status"] == "COMPLETED"

        assert client.delete(f"/detection/results/{result_id}").status_code == 200
        assert client.get(f"/detection/results/{result_id}/details").status_code == 404

    def test_apply_creates_filtered_version(self, client, ta_dataset):
        dataset, version = ta_dataset
        column_id = _ta_column_id(client, dataset.id)
        client.patch(f"/thresholds/columns/{column_id}", json={"min_threshold": -40, "max_threshold": 50})
        result_id = client.post("/detection/execute", json={
            "dataset_id": dataset.id, "version_id": version.id,
        }).json()["data"]["result_id"]

        applied = client.post(f"/detection/results/{result_id}/apply").json()["data"]
        assert applied["stage_type"] == "FILTERED"
        assert applied["parent_version_id"] == version.id

        results = client.get(f"/detection/datasets/{dataset.id}/results").json()["data"]
        assert results[0]["generated_version_id"] == applied["id"]
        versions = client.get(f"/datasets/{dataset.id}/versions").json()["data"]
        assert [v["stage_type"] for v in versions] == ["RAW", "FILTERED"]

    def test_apply_unknown_result(self, client):
        assert client.post("/detection/results/999/apply").status_code == 404


class TestImputationFlow:
    CSV = "TIMESTAMP,Ta\n2024-01-01 00:00,1\n2024-01-01 00:30,\n2024-01-01 01:00,3"

    def test_methods_filtering(self, client):
        everything = client.get("/imputation/methods").json()["data"]
        assert len(everything) == 22
        ml = client.get("/imputation/methods", params={"category": "ml", "only_available": True}).json()["data"]
        assert "GRADIENT_BOOSTING" not in {m["id"] for m in ml}
        assert all(m["category"] == "ml" for m in ml)

    def test_execute_inline(self, client, make_dataset):
        dataset, version = make_dataset(self.CSV)
        summary = client.post("/imputation/execute", json={
            "dataset_id": dataset.id, "version_id": version.id,
            "method_id": "LINEAR", "target_columns": ["Ta"],
        }).json()["data"]
        assert summary["imputed_count"] == 1
        assert summary["status"] == "COMPLETED"

        result = client.get(f"/imputation/results/{summary['result_id']}").json()["data"]
        assert result["imputation_rate"] == 1.0
        details = client.get(f"/imputation/results/{summary['result_id']}/details").json()["data"]
        assert details["details"][0]["imputed_value"] == 2.0

    def test_execute_in_background(self, client, make_dataset, monkeypatch, db):
        task = MagicMock()
        monkeypatch.setattr("fluxqc.routes.imputation.run_imputation_job", task)
        dataset, version = make_dataset(self.CSV)

        queued = client.post("/imputation/execute", params={"background": True}, json={
            "dataset_id": dataset.id, "version_id": version.id,
            "method_id": "MEAN", "target_columns": ["Ta"],
        }).json()["data"]

        assert queued["status"] == "PENDING"
        task.delay.assert_called_once_with(queued["result_id"])
        assert db.get(ImputationResult, queued["result_id"]).status == "PENDING"

    def test_background_validation_happens_up_front(self, client, ta_dataset, monkeypatch):
        task = MagicMock()
        monkeypatch.setattr("fluxqc.routes.imputation.run_imputation_job", task)
        dataset, version = ta_dataset

        response = client.post("/imputation/execute", params={"background": True}, json={
            "dataset_id": dataset.id, "version_id": version.id,
            "method_id": "GAIN", "target_columns": ["Ta"],
        })
        assert response.status_code == 409
        task.delay.assert_not_called()
