import pytest

from src.utils.config import (
    PipelineConfig,
    load_config,
    load_yaml,
    parse_dbscan_setting,
)
from src.utils.errors import ConfigError


@pytest.fixture
def yaml_file(tmp_path):
    path = tmp_path / "params.yaml"
    path.write_text(
        "data_path: from_yaml.data\n"
        "n_components: 3\n"
        "label_scheme: mass\n"
        "dbscan_settings:\n"
        "  - [1.5, 3]\n"
    )
    return path


def test_defaults():
    cfg = PipelineConfig(data_path="x").validate()
    assert cfg.n_components == 2
    assert cfg.confidence == 0.975
    assert cfg.dbscan_settings == ((1.0, 3), (2.0, 4))
    assert cfg.mixture_components == 4
    assert cfg.random_state == 42
    assert cfg.label_codes == ("2", "4")


def test_data_path_is_required():
    with pytest.raises(ConfigError) as exc:
        load_config()
    assert exc.value.key == "data_path"


def test_yaml_overrides_defaults(yaml_file):
    cfg = load_config(yaml_file)
    assert cfg.data_path == "from_yaml.data"
    assert cfg.n_components == 3
    assert cfg.label_codes == ("benign", "malignant")
    assert cfg.dbscan_settings == ((1.5, 3),)
    assert cfg.mixture_components == 4


def test_cli_overrides_yaml(yaml_file):
    cfg = load_config(yaml_file, {"n_components": 5, "label_scheme": None,
                                  "dbscan_settings": [(0.5, 2)]})
    assert cfg.n_components == 5
    assert cfg.label_scheme == "mass"
    assert cfg.dbscan_settings == ((0.5, 2),)


def test_unknown_key(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("data_path: x\nepsilon: 3\n")
    with pytest.raises(ConfigError) as exc:
        load_config(path)
    assert exc.value.key == "epsilon"


def test_missing_and_malformed_yaml(tmp_path):
    with pytest.raises(ConfigError):
        load_yaml(tmp_path / "absent.yaml")
    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_yaml(bad)


@pytest.mark.parametrize("overrides", [
    {"label_scheme": "other"},
    {"n_components": 10},
    {"confidence": 1.0},
    {"dbscan_settings": [(0.0, 3)]},
    {"dbscan_settings": []},
    {"dbscan_settings": [(1.0, 3), (1, 3)]},
    {"mixture_components": 0},
    {"covariance_type": "banded"},
    {"n_jobs": 0},
])
def test_invalid_values(overrides):
    with pytest.raises(ConfigError):
        load_config(overrides={"data_path": "x", **overrides})


def test_parse_dbscan_setting():
    assert parse_dbscan_setting("1.5:4") == (1.5, 4)
    with pytest.raises(ConfigError):
        parse_dbscan_setting("1.5")
    with pytest.raises(ConfigError):
        parse_dbscan_setting("a:b")
