"""Tests for the unpack_spritesheet command-line interface."""

import pytest
from create_test_data import SCENE, encode_json, encode_plist, json_hash, plist_format_2, write_sheet
from unpack_spritesheet import build_parser, main


def test_parser_defaults():
    args = build_parser().parse_args(["assets"])
    assert args.syntax is None
    assert args.output_dir is None
    assert not args.dry_run


def test_parser_rejects_unknown_syntax(capsys):
    with pytest.raises(SystemExit) as exc_info:
        build_parser().parse_args(["assets", "xml"])
    assert exc_info.value.code == 2


def test_main_unpacks_base_name(tmp_path, capsys):
    write_sheet(tmp_path, "sheet", encode_plist(plist_format_2()), ".plist")

    exit_code = main([str(tmp_path / "sheet"), "plist"])

    assert exit_code == 0
    assert (tmp_path / "sheet" / "flag.png").exists()
    assert f"{len(SCENE)} sprites extracted" in capsys.readouterr().out


def test_main_output_dir_and_dry_run(tmp_path):
    write_sheet(tmp_path / "in", "sheet", encode_json(json_hash()), ".json")

    assert main([str(tmp_path / "in"), "--output-dir", str(tmp_path / "out"), "--dry-run"]) == 0
    assert not (tmp_path / "out").exists()


def test_main_reports_missing_files(tmp_path, capsys):
    exit_code = main([str(tmp_path / "nothing"), "json"])

    assert exit_code == 1
    assert "Error:" in capsys.readouterr().err


def test_main_batch_with_failures_exits_nonzero(tmp_path):
    write_sheet(tmp_path, "good", encode_json(json_hash()), ".json")
    (tmp_path / "orphan.json").write_bytes(encode_json(json_hash()))

    assert main([str(tmp_path)]) == 1
    assert (tmp_path / "good" / "hero.png").exists()


def test_main_rejects_bad_worker_count(tmp_path, capsys):
    assert main([str(tmp_path), "--workers", "0"]) == 2


def test_main_rerun_on_base_name_unpacks_again(tmp_path, capsys):
    """The first run creates sheet/, which must not turn the second into a directory scan."""
    write_sheet(tmp_path, "sheet", encode_json(json_hash()), ".json")

    assert main([str(tmp_path / "sheet"), "json"]) == 0
    (tmp_path / "sheet" / "hero.png").unlink()
    capsys.readouterr()

    assert main([str(tmp_path / "sheet"), "json"]) == 0
    assert (tmp_path / "sheet" / "hero.png").exists()
    assert f"{len(SCENE)} sprites extracted" in capsys.readouterr().out


def test_main_empty_directory_is_an_error(tmp_path, capsys):
    (tmp_path / "empty").mkdir()

    assert main([str(tmp_path / "empty")]) == 1
    assert "no sprite sheets found" in capsys.readouterr().err
