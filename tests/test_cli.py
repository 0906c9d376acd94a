from collections import Counter

from labkv.mr.apps import indexer_map, indexer_reduce, nocrash_map, nocrash_reduce, wc_map, wc_reduce
from labkv.mr.cli import coordinator_main, run_sequential, sequential_main, worker_main


def _parse(lines):
    return dict(line.rstrip("\n").split(" ", 1) for line in lines)


def test_word_count_matches_counter(tmp_path):
    texts = ["alpha beta gamma beta", "gamma delta alpha alpha"]
    files = []
    for i, text in enumerate(texts):
        path = tmp_path / f"in-{i}.txt"
        path.write_text(text)
        files.append(str(path))
    out = tmp_path / "out.txt"
    lines = run_sequential(wc_map, wc_reduce, files, out)
    expected = Counter(" ".join(texts).split())
    assert _parse(lines) == {k: str(v) for k, v in expected.items()}
    assert out.read_text().splitlines(keepends=True) == lines


def test_output_sorted_and_unique(tmp_path):
    path = tmp_path / "in.txt"
    path.write_text("zeta eta theta eta zeta iota kappa")
    lines = run_sequential(wc_map, wc_reduce, [str(path)], tmp_path / "out")
    keys = [line.split(" ", 1)[0] for line in lines]
    assert keys == sorted(set(keys))
    assert all(line.endswith("\n") for line in lines)


def test_nocrash_format(tmp_path):
    path = tmp_path / "doc.txt"
    path.write_text("hello")
    name = str(path)
    lines = run_sequential(nocrash_map, nocrash_reduce, [name], tmp_path / "out")
    assert lines == [
        f"a {name}\n",
        f"b {len(name)}\n",
        f"c {len('hello')}\n",
        "d xyzzy\n",
    ]


def test_indexer_lists_documents(tmp_path):
    one = tmp_path / "one.txt"
    two = tmp_path / "two.txt"
    one.write_text("cat dog")
    two.write_text("dog bird dog")
    result = _parse(run_sequential(indexer_map, indexer_reduce, [str(one), str(two)], tmp_path / "o"))
    assert result["dog"] == f"2 {','.join(sorted([str(one), str(two)]))}"
    assert result["cat"] == f"1 {one}"


def test_no_inputs_writes_empty_file(tmp_path):
    out = tmp_path / "out"
    assert run_sequential(wc_map, wc_reduce, [], out) == []
    assert out.read_text() == ""


def test_sequential_main_writes_mr_out_0(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "pg-a.txt").write_text("one two two")
    assert sequential_main(["../mrapps/wc.so", "pg-a.txt"]) == 0
    written = (tmp_path / "mr-out-0").read_text().splitlines()
    assert _parse(written) == {k: str(v) for k, v in Counter("one two two".split()).items()}


def test_sequential_main_usage(capsys):
    assert sequential_main(["wc.so"]) == 1
    assert "Usage: mrsequential xxx.so inputfiles..." in capsys.readouterr().err


def test_sequential_main_unknown_app(tmp_path, capsys):
    path = tmp_path / "x.txt"
    path.write_text("x")
    assert sequential_main(["nosuch.so", str(path)]) == 1
    assert "cannot load plugin nosuch.so" in capsys.readouterr().err


def test_sequential_main_missing_input(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert sequential_main(["wc.so", "missing.txt"]) == 1
    assert "cannot open missing.txt" in capsys.readouterr().err
    assert not (tmp_path / "mr-out-0").exists()


def test_coordinator_main_usage(capsys):
    assert coordinator_main([]) == 1
    assert "Usage: mrcoordinator inputfiles..." in capsys.readouterr().err


def test_worker_main_usage(capsys):
    assert worker_main([]) == 1
    assert worker_main(["wc.so", "extra"]) == 1
    assert capsys.readouterr().err.count("Usage: mrworker xxx.so") == 2


def test_worker_main_unknown_app(capsys):
    assert worker_main(["nosuch.so"]) == 1
    assert "cannot load plugin" in capsys.readouterr().err