"""DependencyExtractor / merge_requirements 单元测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from pkgvc.core.exceptions import MalformedRequirementsError
from pkgvc.core.models import DependencyRequirement
from pkgvc.core.sources import by_name_length
from pkgvc.services.dependency_extractor import (
    DependencyExtractor,
    merge_requirements,
    parse_requires,
)


class TestParseRequires:
    def test_basic(self) -> None:
        assert parse_requires('((bar "1.0") (baz "2.3"))') == [("bar", "1.0"), ("baz", "2.3")]

    def test_bare_name_means_zero(self) -> None:
        assert parse_requires("((bar))") == [("bar", "0")]

    def test_quoted_and_nil(self) -> None:
        assert parse_requires("'((bar \"1\"))") == [("bar", "1")]
        assert parse_requires("nil") == []

    @pytest.mark.parametrize("text", [
        '((bar "1.0")',        # 缺括号
        '"bar"',               # 不是列表
        '(bar "1.0")',         # 少一层
        '((bar 1.0))',         # 版本不是字符串
        '((bar "1" "2"))',     # 多余字段
        '(("" "1"))',          # 空包名
    ])
    def test_malformed(self, text: str) -> None:
        with pytest.raises(MalformedRequirementsError):
            parse_requires(text, origin="foo.py")


class TestExtract:
    def test_multiline_header_across_files(self, tmp_path: Path, write_files) -> None:
        write_files(tmp_path, {
            "foo.py": (
                "# foo.py --- Frob\n"
                '# Package-Requires: ((bar "1.0")\n'
                '#                    (baz "2.3"))\n'
                "import bar\n"
            ),
            "foo-extra.py": '# Package-Requires: ((qux "0.1") (bar "1.5"))\n',
            "plain.py": "x = 1\n",
            "sub/nested.py": '# Package-Requires: ((hidden "9"))\n',
        })
        raw = DependencyExtractor().extract(tmp_path)
        assert raw == [("qux", "0.1"), ("bar", "1.5"), ("bar", "1.0"), ("baz", "2.3")]

    def test_ordering_is_pluggable(self, tmp_path: Path, write_files) -> None:
        write_files(tmp_path, {
            "aaaa.py": '# Package-Requires: ((one "1"))\n',
            "b.py": '# Package-Requires: ((two "2"))\n',
        })
        raw = DependencyExtractor(order=by_name_length).extract(tmp_path)
        assert [name for name, _ in raw] == ["two", "one"]

    def test_no_headers(self, tmp_path: Path, write_files) -> None:
        write_files(tmp_path, {"foo.py": "print('hi')\n"})
        assert DependencyExtractor().extract(tmp_path) == []

    def test_malformed_header_names_file(self, tmp_path: Path, write_files) -> None:
        write_files(tmp_path, {"foo.py": "# Package-Requires: ((bar \"1.0\"\n"})
        with pytest.raises(MalformedRequirementsError, match="foo.py"):
            DependencyExtractor().extract(tmp_path)


class TestMergeRequirements:
    def test_max_version_wins_first_position_kept(self) -> None:
        merged = merge_requirements([("a", "1.0"), ("b", "2.0"), ("a", "1.5"), ("a", "0.9")])
        assert [(r.name, r.min_version) for r in merged] == [("a", (1, 5)), ("b", (2, 0))]

    def test_names_unique(self) -> None:
        merged = merge_requirements([("x", "1"), ("x", "1"), ("y", "0")])
        assert len({r.name for r in merged}) == len(merged) == 2

    def test_invalid_version(self) -> None:
        with pytest.raises(MalformedRequirementsError, match="bar"):
            merge_requirements([("bar", "one")])

    def test_requirement_equality_by_name(self) -> None:
        assert DependencyRequirement("a", (1,)) == DependencyRequirement("a", (2,))
        assert len({DependencyRequirement("a", (1,)), DependencyRequirement("a", (2,))}) == 1
