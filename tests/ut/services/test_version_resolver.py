"""VersionResolver 单元测试"""

from __future__ import annotations

from pathlib import Path

from pkgvc.core.sources import by_name
from pkgvc.services.version_resolver import FALLBACK_COMMIT, FALLBACK_VERSION, VersionResolver


class TestVersion:
    def test_no_headers_falls_back(self, tmp_path: Path, fake_vc, write_files) -> None:
        write_files(tmp_path, {"foo.py": "import os\n"})
        assert VersionResolver(fake_vc).version(tmp_path) == FALLBACK_VERSION == "0"

    def test_empty_directory(self, tmp_path: Path, fake_vc) -> None:
        assert VersionResolver(fake_vc).version(tmp_path) == "0"

    def test_package_version_preferred(self, tmp_path: Path, fake_vc, write_files) -> None:
        write_files(tmp_path, {"foo.py": "# Version: 1.0\n# Package-Version: 1.1\n"})
        assert VersionResolver(fake_vc).version(tmp_path) == "1.1"

    def test_shortest_filename_first(self, tmp_path: Path, fake_vc, write_files) -> None:
        write_files(tmp_path, {
            "foo-extras.py": "# Version: 9.0\n",
            "foo.py": "# Version: 1.2\n",
        })
        assert VersionResolver(fake_vc).version(tmp_path) == "1.2"

    def test_ordering_is_pluggable(self, tmp_path: Path, fake_vc, write_files) -> None:
        write_files(tmp_path, {
            "a-long-name.py": "# Version: 3.0\n",
            "zz.py": "# Version: 1.0\n",
        })
        assert VersionResolver(fake_vc, version_order=by_name).version(tmp_path) == "3.0"

    def test_rcs_artifacts_stripped(self, tmp_path: Path, fake_vc, write_files) -> None:
        write_files(tmp_path, {"foo.py": "# Version: $Revision: 1.4 $\n"})
        assert VersionResolver(fake_vc).version(tmp_path) == "1.4"

    def test_unparsable_value_skipped(self, tmp_path: Path, fake_vc, write_files) -> None:
        write_files(tmp_path, {
            "foo.py": "# Version: $Revision$\n",
            "foo-util.py": "# Version: 2.0\n",
        })
        assert VersionResolver(fake_vc).version(tmp_path) == "2.0"

    def test_descriptor_and_hidden_files_ignored(self, tmp_path: Path, fake_vc, write_files) -> None:
        write_files(tmp_path, {
            ".x.py": "# Version: 5.0\n",
            "foo-pkg.sexp": "# Version: 6.0\n",
            "foo.py": "x = 1\n",
        })
        assert VersionResolver(fake_vc).version(tmp_path) == "0"

    def test_custom_suffix(self, tmp_path: Path, fake_vc, write_files) -> None:
        write_files(tmp_path, {"foo.el": "# Version: 0.5\n", "foo.py": "# Version: 7\n"})
        assert VersionResolver(fake_vc, suffix=".el").version(tmp_path) == "0.5"


class TestCommit:
    def test_first_non_blank_wins(self, tmp_path: Path, make_vc, write_files) -> None:
        write_files(tmp_path, {"a.py": "", "b.py": ""})
        answers = {"a.py": "   ", "b.py": "cafe01\n"}

        class Vc(make_vc):
            def working_revision(self, file: Path) -> str | None:
                return answers[file.name]

        assert VersionResolver(Vc()).commit(tmp_path) == "cafe01"

    def test_unknown_without_revision(self, tmp_path: Path, make_vc, write_files) -> None:
        write_files(tmp_path, {"a.py": ""})
        assert VersionResolver(make_vc(commit=None)).commit(tmp_path) == FALLBACK_COMMIT

    def test_unknown_without_files(self, tmp_path: Path, fake_vc) -> None:
        assert VersionResolver(fake_vc).commit(tmp_path) == "unknown"
