from pathlib import Path

import pytest

from shared.config import StackEvalConfig, get_config


def test_defaults():
    config = StackEvalConfig()

    assert config.decoder.grammar == "standard"
    assert config.decoder.word_width is None
    assert config.annotate.max_unbounded_symbol_span == 0x10000
    assert config.annotate.stack_local_threshold == 0x1000
    assert config.annotate.sentinel_values == [0xEEEEEEEE, 0xDEADBEEF]
    assert config.symbols.exclude_prefixes == ["_vx_offset"]


def test_load_partial_file(tmp_path: Path):
    path = tmp_path / "target.toml"
    path.write_text(
        "[global]\n"
        'log_level = "DEBUG"\n'
        "[decoder]\n"
        'grammar = "xxd"\n'
        'byte_order = "little"\n'
        "unknown_key = 1\n"
        "[annotate]\n"
        "stack_local_threshold = 0x2000\n"
        "[not_a_section]\n"
        "x = 1\n"
    )

    config = StackEvalConfig.load(path)

    assert config.global_settings.log_level == "DEBUG"
    assert config.decoder.grammar == "xxd"
    assert config.decoder.byte_order == "little"
    assert config.decoder.verify_round_trip is True
    assert config.annotate.stack_local_threshold == 0x2000
    assert config.annotate.window_alignment == 16
    assert config.symbols.kinds == ["FUNC", "OBJECT"]


def test_shipped_file_matches_defaults():
    assert StackEvalConfig.load().to_dict() == StackEvalConfig().to_dict()


def test_missing_explicit_path(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        StackEvalConfig.load(tmp_path / "nope.toml")


def test_to_dict_sections():
    data = StackEvalConfig().to_dict()

    assert set(data) == {"global_settings", "decoder", "annotate", "symbols"}
    assert data["symbols"]["exclude_names"] == ["cpuPwrIntEnterHook"]


def test_get_config_caches(tmp_path: Path):
    path = tmp_path / "cached.toml"
    path.write_text("[annotate]\nwindow_alignment = 32\n")

    first = get_config(path)
    second = get_config()

    assert first is second
    assert second.annotate.window_alignment == 32
