"""
Tests for detection configuration CRUD across APP / SITE / DATASET scopes
"""

import pytest

from fluxqc.schemas.thresholds import DetectionConfigCreate, DetectionConfigUpdate
from fluxqc.services import datasets, detection_configs
from fluxqc.services.errors import NotFoundError, ValidationError


def _create(db, **overrides):
    data = dict(scope_type="APP", detection_method="THRESHOLD_STATIC",
                column_name="Ta", method_params={"min_value": -40, "max_value": 50})
    data.update(overrides)
    return detection_configs.create_config(db, DetectionConfigCreate(**data))


@pytest.fixture
def site(db):
    return datasets.create_site(db, "Yucheng", latitude=36.8, longitude=116.6)


class TestCreate:
    def test_app_scope_ignores_scope_id(self, db):
        config = _create(db, scope_id=42)
        assert config.scope_id is None
        assert config.is_active is True
        assert config.priority == 0

    def test_site_scope_requires_id(self, db):
        with pytest.raises(ValidationError, match="scope_id"):
            _create(db, scope_type="SITE")

    def test_site_must_exist(self, db):
        with pytest.raises(NotFoundError):
            _create(db, scope_type="SITE", scope_id=999)

    def test_dataset_scope(self, db, ta_dataset):
        dataset, _ = ta_dataset
        config = _create(db, scope_type="DATASET", scope_id=dataset.id)
        assert (config.scope_type, config.scope_id) == ("DATASET", dataset.id)

    def test_params_stored_as_given(self, db):
        config = _create(db, method_params={"min_value": -40})
        assert config.method_params == {"min_value": -40}

    def test_unknown_method(self, db):
        with pytest.raises(ValidationError):
            _create(db, detection_method="LOF", method_params={})

    def test_unknown_param(self, db):
        with pytest.raises(ValidationError):
            _create(db, detection_method="ZSCORE", method_params={"window": 3})

    def test_param_out_of_range(self, db):
        with pytest.raises(ValidationError):
            _create(db, detection_method="IQR", method_params={"multiplier": 9})

    def test_inverted_bounds(self, db):
        with pytest.raises(ValidationError):
            _create(db, method_params={"min_value": 50, "max_value": -40})

    def test_blank_column_is_wildcard(self, db):
        assert _create(db, column_name="").column_name is None


class TestList:
    def test_filter_by_scope(self, db, site):
        app = _create(db)
        site_config = _create(db, scope_type="SITE", scope_id=site.id)
        assert [c.id for c in detection_configs.list_configs(db, "SITE", site.id)] == [site_config.id]
        assert [c.id for c in detection_configs.list_configs(db, "APP")] == [app.id]
        assert len(detection_configs.list_configs(db)) == 2

    def test_ordered_by_priority(self, db):
        late = _create(db, priority=5)
        early = _create(db, priority=1)
        assert [c.id for c in detection_configs.list_configs(db, "APP")] == [early.id, late.id]


class TestUpdateAndDelete:
    def test_partial_update(self, db):
        config = _create(db)
        updated = detection_configs.update_config(db, config.id, DetectionConfigUpdate(priority=3, is_active=False))
        assert (updated.priority, updated.is_active) == (3, False)
        assert updated.method_params == {"min_value": -40, "max_value": 50}

    def test_method_change_rechecks_params(self, db):
        config = _create(db)
        with pytest.raises(ValidationError):
            detection_configs.update_config(db, config.id, DetectionConfigUpdate(detection_method="ZSCORE"))
        updated = detection_configs.update_config(
            db, config.id, DetectionConfigUpdate(detection_method="ZSCORE", method_params={"threshold": 2.5})
        )
        assert updated.detection_method == "ZSCORE"

    def test_empty_update(self, db):
        config = _create(db)
        with pytest.raises(ValidationError):
            detection_configs.update_config(db, config.id, DetectionConfigUpdate())

    def test_null_priority_rejected(self, db):
        config = _create(db)
        with pytest.raises(ValidationError):
            detection_configs.update_config(db, config.id, DetectionConfigUpdate(priority=None))

    def test_soft_delete(self, db):
        config = _create(db)
        detection_configs.delete_config(db, config.id)
        assert detection_configs.list_configs(db) == []
        with pytest.raises(NotFoundError):
            detection_configs.get_config_or_raise(db, config.id)
        with pytest.raises(NotFoundError):
            detection_configs.delete_config(db, config.id)
