"""
Tests for site / dataset registration and dataset versions
"""

import pandas as pd
import pytest

from fluxqc.services import datasets
from fluxqc.services.errors import EmptyDataError, NotFoundError, ValidationError


class TestInferDataType:
    def test_number(self):
        assert datasets.infer_data_type(pd.Series(["1", "2.5", None, "-3"])) == "number"

    def test_datetime(self):
        assert datasets.infer_data_type(pd.Series(["2024-01-01 00:00", "2024-01-01 00:30"])) == "datetime"

    def test_string(self):
        assert datasets.infer_data_type(pd.Series(["north", "2"])) == "string"

    def test_all_missing_is_string(self):
        assert datasets.infer_data_type(pd.Series([None, " "])) == "string"


class TestRegisterDataset:
    def test_column_settings_created(self, db, ta_dataset):
        dataset, version = ta_dataset
        settings = sorted(dataset.column_settings, key=lambda c: c.column_index)

        assert [(c.column_name, c.column_index, c.data_type) for c in settings] == [
            ("TIMESTAMP", 0, "datetime"),
            ("Ta", 1, "number"),
        ]
        assert dataset.time_column == "TIMESTAMP"
        assert [c.is_active for c in settings] == [False, True]
        assert all(c.min_threshold is None for c in settings)
        assert version.stage_type == "RAW"
        assert version.file_path == dataset.source_file_path

    def test_default_missing_tokens(self, db, ta_dataset):
        dataset, _ = ta_dataset
        assert "-9999" in dataset.missing_value_types

    def test_custom_missing_tokens(self, db, make_dataset):
        dataset, _ = make_dataset("Ta\n1\n-1", missing_value_types=["-1"])
        assert dataset.missing_value_types == ["-1"]

    def test_time_column_detected_by_type(self, db, make_dataset):
        dataset, _ = make_dataset("when,Ta\n2024-05-01 00:00,1\n2024-05-01 00:30,2")
        assert dataset.time_column == "when"

    def test_unknown_site(self, db, write_csv):
        with pytest.raises(NotFoundError):
            datasets.register_dataset(db, 999, "flux", write_csv("Ta\n1"))

    def test_blank_name(self, db, write_csv):
        site = datasets.create_site(db, "Yucheng")
        with pytest.raises(ValidationError):
            datasets.register_dataset(db, site.id, "  ", write_csv("Ta\n1"))

    def test_header_only_file(self, db, write_csv):
        site = datasets.create_site(db, "Yucheng")
        with pytest.raises(EmptyDataError):
            datasets.register_dataset(db, site.id, "flux", write_csv("Ta,RH"))


class TestSites:
    def test_coordinates_validated(self, db):
        with pytest.raises(ValidationError):
            datasets.create_site(db, "Pole", latitude=95)
        with pytest.raises(ValidationError):
            datasets.create_site(db, "Dateline", longitude=-181)

    def test_name_required(self, db):
        with pytest.raises(ValidationError):
            datasets.create_site(db, "")


class TestVersions:
    def test_create_child_version(self, db, ta_dataset, write_csv):
        dataset, raw = ta_dataset
        qc = datasets.create_version(db, dataset.id, "QC", write_csv("Ta\n1", name="qc.csv"),
                                     parent_version_id=raw.id, remark="despiked")
        assert qc.parent_version_id == raw.id
        assert [v.stage_type for v in datasets.list_versions(db, dataset.id)] == ["RAW", "QC"]

    def test_bad_stage(self, db, ta_dataset):
        dataset, _ = ta_dataset
        with pytest.raises(ValidationError):
            datasets.create_version(db, dataset.id, "CLEAN", "x.csv")

    def test_parent_from_other_dataset(self, db, ta_dataset, make_dataset):
        dataset, _ = ta_dataset
        _, foreign = make_dataset("Ta\n1")
        with pytest.raises(NotFoundError):
            datasets.create_version(db, dataset.id, "QC", "x.csv", parent_version_id=foreign.id)

    def test_version_must_belong_to_dataset(self, db, ta_dataset, make_dataset):
        dataset, _ = ta_dataset
        _, foreign = make_dataset("Ta\n1")
        with pytest.raises(NotFoundError):
            datasets.get_version_or_raise(db, dataset.id, foreign.id)
