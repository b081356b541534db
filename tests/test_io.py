"""Tests for CSV loading and result writing."""

import json
import logging

import numpy as np
import pandas as pd
import pytest

from coexnet.config import PipelineConfig
from coexnet.io.loaders import load_expression_csv, rename_reserved_features
from coexnet.io.writers import assignment_table, write_results
from coexnet.pipeline import run_pipeline


def write_csv(tmp_path, text, name="data.csv"):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestLoadExpressionCsv:
    """Samples as rows, traits to metadata, reserved names renamed."""

    def test_basic_layout(self, tmp_path):
        path = write_csv(tmp_path, (
            "sample,group,PC_34_1,TG_52_2\n"
            "S1,control,5.2,7.8\n"
            "S2,treated,5.4,7.1\n"
            "S3,control,,7.5\n"
        ))
        matrix = load_expression_csv(path, trait_columns=["group"])
        assert matrix.shape == (3, 2)
        assert list(matrix.feature_ids) == ["PC_34_1", "TG_52_2"]
        assert list(matrix.sample_ids) == ["S1", "S2", "S3"]
        assert list(matrix.sample_metadata['group']) == ["control", "treated", "control"]
        assert np.isnan(matrix.data[2, 0])

    def test_non_numeric_columns_become_metadata(self, tmp_path):
        path = write_csv(tmp_path, "id,batch,a,b\nS1,x,1,2\nS2,y,3,4\nS3,x,5,7\n")
        matrix = load_expression_csv(path)
        assert list(matrix.sample_metadata.columns) == ["batch"]
        assert list(matrix.feature_ids) == ["a", "b"]

    def test_reserved_prefix_renamed(self, tmp_path, caplog):
        path = write_csv(tmp_path, "sample,MEF2C,GAPDH\nS1,1,2\nS2,3,4\nS3,5,5\n")
        with caplog.at_level(logging.WARNING, logger="coexnet.io.loaders"):
            matrix = load_expression_csv(path)
        assert list(matrix.feature_ids) == ["XMEF2C", "GAPDH"]
        assert "MEF2C" in caplog.text

    def test_rename_collision_detected(self, tmp_path):
        path = write_csv(tmp_path, "sample,MEF2C,XMEF2C\nS1,1,2\nS2,3,4\nS3,5,5\n")
        with pytest.raises(ValueError, match="Duplicate"):
            load_expression_csv(path)

    def test_duplicate_feature_columns(self, tmp_path):
        path = write_csv(tmp_path, "sample,a,a\nS1,1,2\nS2,3,4\n")
        with pytest.raises(ValueError, match="Duplicate column names"):
            load_expression_csv(path)

    def test_duplicate_sample_ids(self, tmp_path):
        path = write_csv(tmp_path, "sample,a,b\nS1,1,2\nS1,3,4\n")
        with pytest.raises(ValueError, match="Duplicate sample ids"):
            load_expression_csv(path)

    def test_missing_trait_column(self, tmp_path):
        path = write_csv(tmp_path, "sample,a,b\nS1,1,2\nS2,3,4\n")
        with pytest.raises(ValueError, match="Trait columns not found"):
            load_expression_csv(path, trait_columns=["group"])

    def test_transposed_tab_separated(self, tmp_path):
        path = write_csv(tmp_path, "feature\tS1\tS2\tS3\ng1\t1\t2\t3\nMEg2\t4\t5\t7\n", "data.tsv")
        matrix = load_expression_csv(path, transpose=True)
        assert list(matrix.sample_ids) == ["S1", "S2", "S3"]
        assert list(matrix.feature_ids) == ["g1", "XMEg2"]
        np.testing.assert_array_equal(matrix.data[:, 1], [4, 5, 7])

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_expression_csv(tmp_path / "absent.csv")

    def test_rename_without_reserved_prefix(self):
        assert rename_reserved_features(["MEa", "b"], reserved_prefix="") == ["MEa", "b"]


class TestWriteResults:
    """Every table lands in the output directory."""

    @pytest.fixture
    def result(self, module_matrix):
        config = PipelineConfig(soft_power_range=[6], min_cluster_size=5, cut_height=0.9)
        return run_pipeline(module_matrix, traits=['group'], config=config)

    def test_files_written(self, result, tmp_path):
        paths = write_results(result, tmp_path / "out")
        assert set(paths) == {
            'module_assignment', 'eigengenes', 'soft_threshold', 'hub_features',
            'module_trait_correlation', 'module_trait_pvalue', 'summary',
        }
        for path in paths.values():
            assert path.exists()
        assert not list((tmp_path / "out").glob("*.tmp"))

    def test_assignment_table(self, result, tmp_path):
        paths = write_results(result, tmp_path)
        table = pd.read_csv(paths['module_assignment'], index_col='feature')
        assert list(table.columns) == ['module', 'color', 'kME']
        assert len(table) == len(result.assignment.labels)
        grey = table[table['module'] == 0]
        assert (grey['color'] == 'grey').all()
        assert grey['kME'].isna().all()

    def test_assignment_table_matches_result(self, result):
        table = assignment_table(result)
        assert table.index.name == 'feature'
        assert table['module'].equals(result.assignment.labels)

    def test_summary_contents(self, result, tmp_path):
        paths = write_results(result, tmp_path)
        summary = json.loads(paths['summary'].read_text())
        assert summary['soft_threshold']['power'] == 6
        assert summary['n_modules'] == result.assignment.n_modules

    def test_no_trait_tables_without_traits(self, module_matrix, tmp_path):
        config = PipelineConfig(soft_power_range=[6], min_cluster_size=5, cut_height=0.9)
        paths = write_results(run_pipeline(module_matrix, config=config), tmp_path)
        assert 'module_trait_correlation' not in paths
        assert not (tmp_path / "module_trait_pvalue.csv").exists()
