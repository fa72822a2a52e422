"""PackageInstaller 单元测试 — 版本控制与编译均为替身，其余组件为真实实现"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from pkgvc.core.exceptions import (
    AlreadyInstalledError,
    CheckoutError,
    CloneError,
    DependencyTransactionError,
    InstallError,
    InvalidSpecError,
    MalformedRequirementsError,
    NoRepositoryError,
)
from pkgvc.core.models import PackageDescriptor, PackageExtras
from pkgvc.services.activation import PackageActivator
from pkgvc.services.archive import ArchiveIndex, TransactionInstaller
from pkgvc.services.descriptor_writer import DescriptorWriter
from pkgvc.services.installer import PackageInstaller
from pkgvc.services.spec_resolver import RepositorySpecResolver

FOO_URL = "https://example.com/foo.git"

FOO_SOURCE = """\
# foo.py --- Frobnicate widgets
#
# Version: 1.2
# URL: https://example.com/foo
# Keywords: tools, vc
# Package-Requires: ((bar "1.0"))

def frob():
    return 42
"""

BAR_DESCRIPTOR = '(define-package "bar" "1.0" "Bar" nil)\n'


class Harness:
    """组装安装器及其协作者"""

    def __init__(self, root: Path, vc, **kwargs) -> None:
        self.root = root
        self.vc = vc
        self.package_dir = root / "packages"
        self.index = ArchiveIndex(root / "index.yml")
        self.activator = PackageActivator(self.package_dir, sys_path=[])
        self.compiler = MagicMock()
        writer = DescriptorWriter()
        self.transaction = kwargs.pop("transaction", None) or TransactionInstaller(
            self.index, self.activator, writer, self.package_dir,
        )
        self.installer = PackageInstaller(
            self.package_dir,
            vc=vc,
            transaction=self.transaction,
            registry=self.activator,
            compiler=self.compiler,
            spec_resolver=RepositorySpecResolver(self.index),
            writer=writer,
            **kwargs,
        )

    def install_bar(self) -> None:
        bar = self.package_dir / "bar-1.0"
        bar.mkdir(parents=True)
        (bar / "bar-pkg.sexp").write_text(BAR_DESCRIPTOR, encoding="utf-8")


@pytest.fixture()
def harness(tmp_path: Path, make_vc) -> Harness:
    h = Harness(tmp_path, make_vc({FOO_URL: {"foo.py": FOO_SOURCE}}))
    h.install_bar()
    h.index.add("foo", version="1.2", summary="Frobnicate widgets",
                vc=f"git {FOO_URL}")
    return h


class TestEndToEnd:
    def test_install_from_index(self, harness: Harness) -> None:
        desc = harness.installer.install_from("foo")

        target = harness.package_dir / "foo-vc"
        assert harness.vc.clone_calls == [("git", FOO_URL, target)]
        text = (target / "foo-pkg.sexp").read_text(encoding="utf-8")
        assert '(vc . "1.2")' in text
        assert ':upstream (git "https://example.com/foo.git" nil nil)' in text
        assert ':commit "0123abcd"' in text

        assert desc.name == "foo" and desc.version == "1.2"
        assert desc.install_dir == target
        assert [(r.name, r.min_version) for r in desc.requires] == [("bar", (1, 0))]
        assert desc.extras.other["url"] == "https://example.com/foo"
        assert desc.extras.other["keywords"] == ["tools", "vc"]
        assert harness.activator.activated["foo"] is desc
        assert str(target) in harness.activator._sys_path

    def test_post_activation_steps(self, harness: Harness) -> None:
        harness.installer.install_from("foo")
        target = harness.package_dir / "foo-vc"
        harness.compiler.compile.assert_called_once_with(target)
        harness.compiler.reload_loaded.assert_called_once_with(target)
        harness.compiler.compile_async.assert_not_called()

    def test_native_compile_in_background(self, tmp_path: Path, make_vc) -> None:
        h = Harness(tmp_path, make_vc({FOO_URL: {"foo.py": "# Version: 1\n"}}), native_compile=True)
        h.installer.install_from(FOO_URL)
        h.compiler.compile_async.assert_called_once_with(h.package_dir / "foo-vc")

    def test_url_install_uses_default_backend_and_records_actual(self, tmp_path: Path, make_vc) -> None:
        vc = make_vc({FOO_URL: {"foo.py": "# Version: 0.3\n"}}, default_backend="hg")
        h = Harness(tmp_path, vc)
        desc = h.installer.install_from(FOO_URL)
        assert vc.clone_calls[0][0] is None
        assert desc.upstream.backend == "hg"
        assert desc.version == "0.3"

    def test_summary_from_header_when_unknown(self, tmp_path: Path, make_vc) -> None:
        h = Harness(tmp_path, make_vc({FOO_URL: {"foo.py": FOO_SOURCE}}))
        h.install_bar()
        desc = h.installer.install_from(FOO_URL)
        assert desc.summary == "Frobnicate widgets"

    def test_no_version_header(self, tmp_path: Path, make_vc) -> None:
        vc = make_vc({FOO_URL: {"foo.py": "x = 1\n"}}, commit=None)
        desc = Harness(tmp_path, vc).installer.install_from(FOO_URL)
        assert desc.version == "0"
        assert desc.extras.commit == "unknown"


class TestRevisionAndSubdir:
    def test_rev_overrides_branch(self, harness: Harness) -> None:
        harness.index.add("foo", vc=f"git {FOO_URL} . stable")
        harness.installer.install_from("foo", rev="v1.2")
        assert harness.vc.checkout_calls == [(harness.package_dir / "foo-vc", "v1.2")]

    def test_branch_used_without_rev(self, harness: Harness) -> None:
        harness.index.add("foo", vc=f"git {FOO_URL} . stable")
        harness.installer.install_from("foo")
        assert harness.vc.checkout_calls[0][1] == "stable"

    def test_no_checkout_without_revision(self, harness: Harness) -> None:
        harness.installer.install_from("foo")
        assert harness.vc.checkout_calls == []

    def test_checkout_failure_propagates_verbatim(self, harness: Harness) -> None:
        harness.vc.fail_checkout = "error: pathspec 'v9' did not match"
        with pytest.raises(CheckoutError, match="pathspec 'v9'"):
            harness.installer.install_from("foo", rev="v9")

    def test_subdir_is_effective_package_dir(self, tmp_path: Path, make_vc) -> None:
        vc = make_vc({FOO_URL: {"README": "", "lisp/foo.py": "# Version: 2.1\n"}})
        h = Harness(tmp_path, vc)
        h.index.add("foo", vc=f"git {FOO_URL} lisp")
        desc = h.installer.install_from("foo")
        sub = h.package_dir / "foo-vc" / "lisp"
        assert desc.install_dir == sub
        assert (sub / "foo-pkg.sexp").is_file()
        assert desc.upstream.subdir == "lisp"
        assert desc.version == "2.1"

    def test_missing_subdir(self, harness: Harness) -> None:
        harness.index.add("foo", vc=f"git {FOO_URL} nope")
        with pytest.raises(CheckoutError, match="nope"):
            harness.installer.install_from("foo")


class TestOverwrite:
    def test_existing_without_confirmation(self, harness: Harness) -> None:
        target = harness.package_dir / "foo-vc"
        target.mkdir(parents=True)
        (target / "keep.txt").write_text("mine", encoding="utf-8")

        with pytest.raises(AlreadyInstalledError):
            harness.installer.install_from("foo")
        with pytest.raises(AlreadyInstalledError):
            harness.installer.install_from("foo", confirm_overwrite=lambda _: False)

        assert (target / "keep.txt").read_text(encoding="utf-8") == "mine"
        assert harness.vc.clone_calls == []

    def test_confirmed_overwrite_removes_first(self, harness: Harness) -> None:
        target = harness.package_dir / "foo-vc"
        target.mkdir(parents=True)
        (target / "stale.py").write_text("# Version: 0.1\n", encoding="utf-8")

        asked: list[Path] = []

        def confirm(path: Path) -> bool:
            asked.append(path)
            return True

        desc = harness.installer.install_from("foo", confirm_overwrite=confirm)
        assert asked == [target]
        assert not (target / "stale.py").exists()
        assert desc.version == "1.2"


class TestFailures:
    def test_missing_upstream(self, harness: Harness) -> None:
        with pytest.raises(NoRepositoryError):
            harness.installer.install(PackageDescriptor(name="foo", extras=PackageExtras()))
        assert harness.vc.clone_calls == []

    def test_clone_error(self, harness: Harness) -> None:
        with pytest.raises(CloneError, match="not found"):
            harness.installer.install_from("https://example.com/other.git")

    def test_clone_without_working_copy(self, harness: Harness) -> None:
        harness.vc.empty_clone = True
        with pytest.raises(CloneError, match="工作副本"):
            harness.installer.install_from("foo")

    def test_dependency_failure_keeps_checkout(self, tmp_path: Path, make_vc) -> None:
        h = Harness(tmp_path, make_vc({FOO_URL: {"foo.py": FOO_SOURCE}}))
        with pytest.raises(DependencyTransactionError, match="bar"):
            h.installer.install_from(FOO_URL)
        target = h.package_dir / "foo-vc"
        assert (target / "foo.py").is_file()
        assert not (target / "foo-pkg.sexp").exists()

    def test_failed_checkout_removed_when_configured(self, tmp_path: Path, make_vc) -> None:
        h = Harness(
            tmp_path, make_vc({FOO_URL: {"foo.py": FOO_SOURCE}}), keep_failed_checkout=False,
        )
        with pytest.raises(DependencyTransactionError):
            h.installer.install_from(FOO_URL)
        assert not (h.package_dir / "foo-vc").exists()

    def test_other_transaction_errors_wrapped(self, tmp_path: Path, make_vc) -> None:
        txn = MagicMock()
        txn.compute_and_install.side_effect = OSError("disk full")
        h = Harness(tmp_path, make_vc({FOO_URL: {"foo.py": FOO_SOURCE}}), transaction=txn)
        with pytest.raises(DependencyTransactionError, match="disk full"):
            h.installer.install_from(FOO_URL)

    def test_no_dependencies_skips_transaction(self, tmp_path: Path, make_vc) -> None:
        txn = MagicMock()
        h = Harness(tmp_path, make_vc({FOO_URL: {"foo.py": "# Version: 1\n"}}), transaction=txn)
        h.installer.install_from(FOO_URL)
        txn.compute_and_install.assert_not_called()

    def test_duplicate_requirements_merged(self, tmp_path: Path, make_vc) -> None:
        txn = MagicMock()
        txn.compute_and_install.return_value = []
        vc = make_vc({FOO_URL: {
            "foo.py": '# Package-Requires: ((bar "1.0") (baz "0.1"))\n',
            "foo-x.py": '# Package-Requires: ((bar "1.4"))\n',
        }})
        h = Harness(tmp_path, vc, transaction=txn)
        h.install_bar()
        h.installer.install_from(FOO_URL)
        (reqs,), _ = txn.compute_and_install.call_args
        assert [(r.name, r.min_version) for r in reqs] == [("bar", (1, 4)), ("baz", (0, 1))]

    def test_malformed_requires(self, tmp_path: Path, make_vc) -> None:
        vc = make_vc({FOO_URL: {"foo.py": '# Package-Requires: ((bar "1.0"\n'}})
        with pytest.raises(MalformedRequirementsError):
            Harness(tmp_path, vc).installer.install_from(FOO_URL)

    def test_activation_failure_is_reported_not_raised(self, tmp_path: Path, make_vc) -> None:
        txn = MagicMock()
        txn.compute_and_install.return_value = []
        h = Harness(tmp_path, make_vc({FOO_URL: {"foo.py": FOO_SOURCE}}), transaction=txn)
        desc = h.installer.install_from(FOO_URL)
        assert desc.name == "foo"
        assert "foo" not in h.activator.activated
        h.compiler.compile.assert_not_called()

    def test_unexpected_error_wrapped_and_cleaned(self, tmp_path: Path, make_vc) -> None:
        h = Harness(
            tmp_path, make_vc({FOO_URL: {"foo.py": FOO_SOURCE}}), keep_failed_checkout=False,
        )
        h.install_bar()
        h.compiler.compile.side_effect = OSError("disk gone")
        with pytest.raises(InstallError, match="disk gone") as exc_info:
            h.installer.install_from(FOO_URL)
        assert exc_info.value.code == "INSTALL_FAILED"
        assert not (h.package_dir / "foo-vc").exists()


class TestPackageName:
    @pytest.mark.parametrize("name", ["../victim", "a/b", "..", ".hidden", ""])
    def test_target_dir_rejects_unsafe_names(self, harness: Harness, name: str) -> None:
        with pytest.raises(InvalidSpecError):
            harness.installer.target_dir(name)

    def test_override_cannot_escape_package_dir(self, harness: Harness) -> None:
        outside = harness.root / "victim-vc"
        outside.mkdir()
        (outside / "keep.txt").write_text("data", encoding="utf-8")

        with pytest.raises(InvalidSpecError):
            harness.installer.install_from(FOO_URL, name="../victim", confirm_overwrite=lambda p: True)

        assert (outside / "keep.txt").read_text(encoding="utf-8") == "data"
        assert harness.vc.clone_calls == []
        assert not (harness.root / "victim-pkg.sexp").exists()

    def test_install_rejects_unsafe_descriptor_name(self, harness: Harness) -> None:
        desc = PackageDescriptor(name="../x", extras=PackageExtras())
        with pytest.raises(InvalidSpecError):
            harness.installer.install(desc)
        assert harness.vc.clone_calls == []


class TestLocking:
    def test_same_name_installs_serialized(self, tmp_path: Path, make_vc) -> None:
        """同名包并发安装: 第二个在锁内看到目标已存在"""
        vc = make_vc({FOO_URL: {"foo.py": "# Version: 1\n"}})
        original_clone = vc.clone
        active = []
        overlaps = []

        def slow_clone(backend, location, dest):
            active.append(dest)
            if len(active) > 1:
                overlaps.append(dest)
            time.sleep(0.05)
            try:
                return original_clone(backend, location, dest)
            finally:
                active.remove(dest)

        vc.clone = slow_clone
        h = Harness(tmp_path, vc)
        errors: list[Exception] = []

        def run() -> None:
            try:
                h.installer.install_from(FOO_URL)
            except AlreadyInstalledError as e:
                errors.append(e)

        threads = [threading.Thread(target=run) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert overlaps == []
        assert len(errors) == 1

    def test_target_dir_uses_suffix(self, tmp_path: Path, make_vc) -> None:
        h = Harness(tmp_path, make_vc(), dir_suffix="git")
        assert h.installer.target_dir("foo") == h.package_dir / "foo-git"

    def test_install_from_requires_resolver(self, tmp_path: Path, make_vc) -> None:
        installer = PackageInstaller(
            tmp_path, vc=make_vc(), transaction=MagicMock(), registry=MagicMock(),
        )
        with pytest.raises(RuntimeError):
            installer.install_from("foo")

    def test_lock_entries_released(self, harness: Harness) -> None:
        harness.installer.install_from("foo")
        with pytest.raises(AlreadyInstalledError):
            harness.installer.install_from("foo")
        assert harness.installer._locks == {}
