"""Unit tests for isomatch.convert_graph module."""

import sys

import pytest

from isomatch.convert_graph import convert_mmap_to_pickle, convert_pickle_to_mmap, main
from isomatch.graph import LabeledGraph


class TestConvert:
    def test_pickle_to_mmap(self, graph, tmp_path):
        graph.save(tmp_path / "g.pkl")
        convert_pickle_to_mmap(str(tmp_path / "g.pkl"), str(tmp_path / "g_mmap"))

        loaded = LabeledGraph.load_mmap(tmp_path / "g_mmap")
        assert loaded.num_nodes == graph.num_nodes
        assert set(loaded.edges()) == set(graph.edges())

    def test_mmap_to_pickle(self, graph, tmp_path):
        graph.save_mmap(tmp_path / "g_mmap")
        convert_mmap_to_pickle(str(tmp_path / "g_mmap"), str(tmp_path / "g.pkl"))

        loaded = LabeledGraph.load(tmp_path / "g.pkl")
        assert loaded.labels() == graph.labels()
        assert loaded.get_node_id(4) == "v4"
        assert loaded.lmdb_store is None

    def test_missing_pickle(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            convert_pickle_to_mmap(str(tmp_path / "none.pkl"), str(tmp_path / "out"))

    def test_missing_mmap_dir(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            convert_mmap_to_pickle(str(tmp_path / "none"), str(tmp_path / "out.pkl"))


class TestMain:
    def test_cli(self, graph, tmp_path, monkeypatch, capsys):
        graph.save(tmp_path / "g.pkl")
        monkeypatch.setattr(
            sys, "argv",
            ["isomatch-convert", "pickle-to-mmap", str(tmp_path / "g.pkl"), str(tmp_path / "out")],
        )
        main()
        assert "Conversion complete" in capsys.readouterr().out
        assert (tmp_path / "out").is_dir()

    def test_cli_missing_input(self, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(
            sys, "argv",
            ["isomatch-convert", "mmap-to-pickle", str(tmp_path / "none"), str(tmp_path / "g.pkl")],
        )
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1
        assert "Error" in capsys.readouterr().err

    def test_cli_no_command(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["isomatch-convert"])
        with pytest.raises(SystemExit):
            main()
