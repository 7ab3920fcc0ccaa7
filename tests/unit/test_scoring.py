"""Tests for file priority scoring."""

from conftest import make_record

from ctxbundle.context.scoring import (
    DEFAULT_RULES,
    ScoreRule,
    calculate_priority,
    prioritize_files,
)


class TestCalculatePriority:
    """Tests for individual scores."""

    def test_root_flake_scores_highest(self) -> None:
        """config + nix + repo-root + small."""
        assert calculate_priority(make_record("flake.nix", "{}")) == 1950

    def test_nested_nix_module(self) -> None:
        """A nested .nix file gets nix + small but not config or root."""
        assert calculate_priority(make_record("modules/git.nix", "{}")) == 850

    def test_shell_script(self) -> None:
        """Shell scripts score above generic source."""
        shell = calculate_priority(make_record("bin/setup.sh", "echo"))
        source = calculate_priority(make_record("bin/setup.py", "pass"))

        assert shell == 650
        assert source == 450

    def test_root_readme(self) -> None:
        """docs + repo-root + readme + small."""
        assert calculate_priority(make_record("README.rst", "x")) == 500

    def test_readme_match_is_case_insensitive(self) -> None:
        """readme detection ignores case."""
        assert calculate_priority(make_record("docs/readme.txt", "x")) == 400

    def test_test_penalty(self) -> None:
        """Files with 'test' in the name lose points."""
        assert calculate_priority(make_record("src/test_main.py", "x")) == 400

    def test_size_adjustments(self) -> None:
        """Small files gain points, large files lose points."""
        medium = calculate_priority(make_record("src/a.py", size=10_000))
        large = calculate_priority(make_record("src/a.py", size=60_000))

        assert medium == 400
        assert large == 350

    def test_size_boundaries_are_exclusive(self) -> None:
        """Exactly 5000 or 50000 bytes gets no size adjustment."""
        assert calculate_priority(make_record("src/a.py", size=5000)) == 400
        assert calculate_priority(make_record("src/a.py", size=50000)) == 400

    def test_config_filename_requires_exact_name(self) -> None:
        """Config names match the base name only."""
        assert calculate_priority(make_record("sub/config.yaml", "x")) == 1050
        assert calculate_priority(make_record("sub/myconfig.yaml", "x")) == 50

    def test_custom_rules(self) -> None:
        """Rules are data and can be replaced."""
        rules = (ScoreRule("lua", lambda f: f.relative_path.endswith(".lua"), 7),)

        assert calculate_priority(make_record("init.lua", "x"), rules) == 7
        assert calculate_priority(make_record("flake.nix", "x"), rules) == 0


class TestPrioritizeFiles:
    """Tests for ordering."""

    def test_flake_before_notes(self) -> None:
        """Higher scores sort first."""
        notes = make_record("notes.md", "n" * 100)
        flake = make_record("flake.nix", "f" * 100)

        ordered = prioritize_files([notes, flake])

        assert ordered == [flake, notes]

    def test_stable_for_equal_scores(self) -> None:
        """Equal scores keep their input order."""
        files = [make_record(f"src/{name}.py", "x") for name in ("c", "a", "b")]

        ordered = prioritize_files(files)

        assert [f.relative_path for f in ordered] == ["src/c.py", "src/a.py", "src/b.py"]

    def test_input_not_mutated(self) -> None:
        """A new list is returned."""
        files = [make_record("src/a.py", "x"), make_record("flake.nix", "x")]
        snapshot = list(files)

        prioritize_files(files)

        assert files == snapshot

    def test_default_rules_are_named(self) -> None:
        """Every default rule has a unique name."""
        names = [rule.name for rule in DEFAULT_RULES]
        assert len(names) == len(set(names))
