"""Tests for the repository context snapshot."""

from ai_intern.core.context_builder import build_repo_context, iter_context_files


def _make_repo(root):
    (root / "cmd").mkdir()
    (root / "cmd" / "main.go").write_text("package main\n")
    (root / "internal").mkdir()
    (root / "internal" / "a.go").write_text("package a\n")
    (root / "README.md").write_text("# Repo\n")
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (root / "node_modules").mkdir()
    (root / "node_modules" / "x.js").write_text("junk")
    (root / "logo.png").write_bytes(b"\x89PNG")


def test_skips_vcs_vendor_and_binary_files(tmp_path):
    _make_repo(tmp_path)

    rel = [p.relative_to(tmp_path).as_posix() for p in iter_context_files(tmp_path)]

    assert rel == ["README.md", "cmd/main.go", "internal/a.go"]


def test_context_blocks_in_sorted_order(tmp_path):
    _make_repo(tmp_path)

    context = build_repo_context(tmp_path, max_files=40, max_bytes_per_file=1024)

    assert context == (
        "\n\n# FILE: README.md\n# Repo\n"
        "\n\n# FILE: cmd/main.go\npackage main\n"
        "\n\n# FILE: internal/a.go\npackage a\n"
    )


def test_respects_file_and_byte_limits(tmp_path):
    (tmp_path / "a.txt").write_text("x" * 100)
    (tmp_path / "b.txt").write_text("y" * 100)

    context = build_repo_context(tmp_path, max_files=1, max_bytes_per_file=10)

    assert context == "\n\n# FILE: a.txt\n" + "x" * 10


def test_binary_content_skipped(tmp_path):
    (tmp_path / "blob.dat").write_bytes(b"ab\x00cd")
    (tmp_path / "text.txt").write_text("hello")

    assert build_repo_context(tmp_path, 40, 1024) == "\n\n# FILE: text.txt\nhello"


def test_missing_root_gives_empty_context(tmp_path):
    assert build_repo_context(tmp_path / "missing", 40, 1024) == ""


def test_tracked_paths_follow_walk_order(tmp_path):
    _make_repo(tmp_path)
    (tmp_path / "scratch.txt").write_text("untracked notes\n")
    tracked = ["internal/a.go", "README.md", "cmd/main.go", "node_modules/x.js", "logo.png"]

    walked = [p.relative_to(tmp_path).as_posix() for p in iter_context_files(tmp_path)]
    listed = [p.relative_to(tmp_path).as_posix() for p in iter_context_files(tmp_path, tracked)]

    assert listed == ["README.md", "cmd/main.go", "internal/a.go"]
    assert "scratch.txt" in walked


def test_context_limited_to_tracked_files(tmp_path):
    _make_repo(tmp_path)
    (tmp_path / "cmd" / "debug.log").write_text("secret local output\n")

    context = build_repo_context(tmp_path, 40, 1024, tracked=["cmd/main.go"])

    assert context == "\n\n# FILE: cmd/main.go\npackage main\n"
