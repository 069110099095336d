"""Tests for keyword extraction and relevance ranking."""

import pytest

from aipilot_cli.context_finder import ContextFinder, calculate_match_score, extract_keywords
from aipilot_cli.errors import AIPilotError
from aipilot_cli.models import FileAnalysis, FileRole, FunctionInfo, ProjectMap
from aipilot_cli.scanner import ProjectScanner


@pytest.fixture
def project_map(sample_project_path):
    return ProjectScanner(sample_project_path).generate_project_map()


def _analysis(relative_path, exports=(), functions=()):
    return FileAnalysis(
        file_path=f"/project/{relative_path}",
        relative_path=relative_path,
        role=FileRole.UTILITY,
        exports=list(exports),
        functions=[FunctionInfo(name=name) for name in functions],
    )


class TestExtractKeywords:
    """Tests for extract_keywords."""

    def test_camel_case_split(self):
        """Test that identifiers are kept whole and split into parts."""
        assert extract_keywords("optimize getUserProfile performance") == [
            "optimize", "getuserprofile", "get", "user", "profile", "performance",
        ]

    def test_short_words_and_duplicates(self):
        """Test that one-letter words are dropped and repeats collapse."""
        assert extract_keywords("a user User x") == ["user"]

    def test_file_names_kept_verbatim(self):
        """Test that a token naming a source file is kept as written."""
        assert "userService.ts" in extract_keywords("fix userService.ts please")

    def test_cjk_runs_and_stop_words(self):
        """Test CJK runs of two or more characters minus stop words."""
        keywords = extract_keywords("实现 用户登录 了")
        assert keywords == ["用户登录"]


class TestCalculateMatchScore:
    """Tests for calculate_match_score."""

    def test_file_name_export_and_function_hits(self):
        """Test 10 (name) + 8 (export) + 6 (function) for one keyword."""
        file = _analysis("src/userProfile.ts", exports=["getUserProfile"], functions=["getUserProfile"])

        assert calculate_match_score(file, ["user"]) == (24, ["user"])

    def test_path_only_hit(self):
        """Test that a directory-only hit scores 5."""
        file = _analysis("src/services/api.ts")

        assert calculate_match_score(file, ["services"]) == (5, ["services"])

    def test_no_hit(self):
        """Test that unmatched keywords score zero."""
        assert calculate_match_score(_analysis("src/a.ts"), ["billing"]) == (0, [])


class TestContextFinder:
    """Tests for ranking against the sample project's map."""

    def test_requires_project_map(self, sample_project_path):
        """Test that searching before a map is set raises."""
        with pytest.raises(AIPilotError):
            ContextFinder(sample_project_path).find_matching_files(["user"])

    def test_ranking(self, sample_project_path, project_map):
        """Test scores and order for 'user profile'."""
        finder = ContextFinder(sample_project_path)
        finder.set_project_map(project_map)

        matches = finder.find_matching_files(finder.extract_keywords("user profile"))
        ranked = [(m.file.relative_path, m.score) for m in matches]

        assert ranked == [
            ("src/services/userService.ts", 46),
            ("src/types/user.types.ts", 32),
            ("src/components/UserCard.tsx", 30),
            ("src/hooks/useUser.ts", 24),
        ]
        assert matches[0].matched_keywords == ["user", "profile"]

    def test_top_match_carries_source_and_related_files(self, sample_project_path, project_map, src_file):
        """Test the code summary and import-related files of the top match."""
        finder = ContextFinder(sample_project_path)
        finder.set_project_map(project_map)

        top = finder.find_matching_files(["profile"])[0]

        assert top.file.relative_path == "src/services/userService.ts"
        assert "fetchUserProfile" in top.code_summary.source_code
        assert [(r.file_path, r.relation) for r in top.related_files] == [
            (src_file("types/user.types.ts"), "import"),
            (src_file("utils/stringUtils.ts"), "import"),
        ]
        assert [i.name for i in top.related_files[0].code_summary.interfaces] == ["User"]

    def test_equal_scores_keep_inventory_order(self, temp_dir):
        """Test that ties are not reordered."""
        files = [_analysis("src/b/orders.ts"), _analysis("src/a/orders.ts")]
        finder = ContextFinder(temp_dir)
        finder.set_project_map(ProjectMap("p", str(temp_dir), 2, {}, files, {}))

        matches = finder.find_matching_files(["orders"])

        assert [m.file.relative_path for m in matches] == ["src/b/orders.ts", "src/a/orders.ts"]
        assert all(m.code_summary.source_code is None for m in matches)


def test_code_summary(sample_project_path, src_file):
    """Test exports, signatures and local dependencies of userService."""
    summary = ContextFinder(sample_project_path).extract_code_summary(src_file("services/userService.ts"))

    assert [(e.name, e.kind) for e in summary.exports] == [
        ("UserService", "class"),
        ("fetchUserProfile", "function"),
    ]
    assert summary.exports[1].signature == "async function fetchUserProfile(id: string): Promise<User>"
    assert summary.dependencies == ["../types/user.types", "@/utils/stringUtils"]
    assert summary.source_code is None


def test_code_summary_of_types_file(sample_project_path, src_file):
    """Test interfaces, aliases and enums of the types file."""
    summary = ContextFinder(sample_project_path).extract_code_summary(src_file("types/user.types.ts"))

    assert [(e.name, e.kind) for e in summary.exports] == [
        ("UserRole", "type"),
        ("Status", "enum"),
        ("User", "interface"),
    ]
    props = {p.name: p for p in summary.interfaces[0].properties}
    assert props["email"].optional is True
    assert props["role"].type == "UserRole"
    assert [(t.name, t.kind) for t in summary.types] == [("UserRole", "type"), ("Status", "enum")]
