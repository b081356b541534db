"""End-to-end tests for run_pipeline."""

import json

import numpy as np
import pandas as pd
import pytest

from coexnet.config import PipelineConfig
from coexnet.core.expression import ExpressionMatrix
from coexnet.exceptions import DegenerateFeatureError
from coexnet.pipeline import run_pipeline
from coexnet.traits.encoding import encode_trait
from conftest import make_matrix


@pytest.fixture
def module_config():
    return PipelineConfig(soft_power_range=[6], min_cluster_size=5, cut_height=0.9)


class TestCorrelatedGroup:
    """Four perfectly correlated features among uncorrelated ones."""

    def test_single_module_found(self, group_matrix):
        config = PipelineConfig(soft_power_range=[12], min_cluster_size=4)
        result = run_pipeline(group_matrix, config=config)

        assert result.soft_threshold.power == 12
        assert result.assignment.partition() == [
            frozenset(["GRP_0", "GRP_1", "GRP_2", "GRP_3"])
        ]
        assert result.assignment.n_unassigned == 4
        assert list(result.merged_eigengenes.columns) == ["MEturquoise"]
        assert result.association is None

    def test_eigengene_tracks_the_group(self, group_matrix):
        config = PipelineConfig(soft_power_range=[12], min_cluster_size=4)
        result = run_pipeline(group_matrix, config=config)
        me = result.merged_eigengenes["MEturquoise"].to_numpy()
        profile = group_matrix.to_frame()["GRP_0"].to_numpy()
        assert np.corrcoef(me, profile)[0, 1] == pytest.approx(1.0)

    def test_hubs_are_members(self, group_matrix):
        config = PipelineConfig(soft_power_range=[12], min_cluster_size=4, hub_top_n=2)
        result = run_pipeline(group_matrix, config=config)
        assert len(result.hubs) == 2
        assert all(f.startswith("GRP") for f in result.hubs['feature'])


class TestNoisyModules:
    """Two latent-factor modules, the first shifted by the 'group' trait."""

    def test_modules_and_trait_association(self, module_matrix, module_config):
        result = run_pipeline(module_matrix, traits=['group'], config=module_config)

        assignment = result.assignment
        m0_label = assignment.labels["M0_0"]
        m1_label = assignment.labels["M1_0"]
        assert m0_label != 0 and m1_label != 0 and m0_label != m1_label
        assert all(assignment.labels[f"M0_{i}"] == m0_label for i in range(12))
        assert all(assignment.labels[f"N_{i}"] == 0 for i in range(10))

        association = result.association
        assert list(association.correlation.columns) == ["group_control", "group_treated"]
        m0_column = f"ME{assignment.color_of(m0_label)}"
        assert m0_column in association.significant_modules
        r = association.correlation.loc[m0_column]
        assert r["group_control"] == pytest.approx(-r["group_treated"])

    def test_noise_features_unassigned_with_default_cut(self, module_matrix):
        config = PipelineConfig(soft_power_range=[6], min_cluster_size=5)
        result = run_pipeline(module_matrix, traits=['group'], config=config)

        labels = result.assignment.labels
        assert all(labels[f"N_{i}"] == 0 for i in range(10))
        assert len({labels[f"M0_{i}"] for i in range(12)}) == 1
        assert len({labels[f"M1_{i}"] for i in range(8)}) == 1
        assert labels["M0_0"] != 0 and labels["M1_0"] != 0

    def test_integer_sample_ids(self, module_matrix, module_config):
        """Trait association works when sample ids are not strings."""
        sample_ids = pd.Index(range(module_matrix.n_samples))
        metadata = module_matrix.sample_metadata.set_axis(sample_ids)
        matrix = ExpressionMatrix(
            module_matrix.data, sample_ids, module_matrix.feature_ids, metadata
        )
        result = run_pipeline(matrix, traits=['group'], config=module_config)

        assert result.association.correlation.shape[1] == 2
        m0_column = f"ME{result.assignment.color_of(result.assignment.labels['M0_0'])}"
        assert m0_column in result.association.significant_modules

    def test_trait_encodings_accepted(self, module_matrix, module_config):
        encoding = encode_trait(module_matrix.sample_metadata['group'])
        result = run_pipeline(module_matrix, traits=encoding, config=module_config)
        assert [trait.name for trait in result.traits] == ["group"]

    def test_unknown_trait_column(self, module_matrix, module_config):
        with pytest.raises(ValueError, match="not found"):
            run_pipeline(module_matrix, traits=['genotype'], config=module_config)

    def test_summary_is_json_serializable(self, module_matrix, module_config):
        result = run_pipeline(module_matrix, traits=['group'], config=module_config)
        summary = json.loads(json.dumps(result.summary()))
        assert summary['n_features'] == module_matrix.n_features
        assert summary['n_modules'] == result.assignment.n_modules
        assert summary['traits'] == ["group"]
        assert summary['config']['min_cluster_size'] == 5
        assert set(result.timings) >= {'similarity', 'soft_threshold', 'detection'}

    def test_membership_covers_every_feature(self, module_matrix, module_config):
        result = run_pipeline(module_matrix, config=module_config)
        assert result.membership.kme.shape == (
            module_matrix.n_features, result.assignment.n_modules,
        )


def test_degenerate_feature_stops_the_run():
    data = np.random.RandomState(0).randn(12, 6)
    data[:, 3] = 0.0
    with pytest.raises(DegenerateFeatureError) as excinfo:
        run_pipeline(make_matrix(data), config=PipelineConfig(soft_power_range=[2]))
    assert excinfo.value.stage == "similarity"
    assert excinfo.value.features == ["F003"]
