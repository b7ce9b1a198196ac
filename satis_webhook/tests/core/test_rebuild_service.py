"""Tests for the rebuild pipeline."""

import hashlib
import hmac
import json
import threading
import time

import pytest

from satis_webhook.core.errors import (
    AccessDenied,
    AuthenticationFailed,
    ConfigurationMissing,
    PreconditionFailed,
)
from satis_webhook.core.models import (
    BuildResult,
    OutputStream,
    Provider,
    RebuildConfig,
    WebhookRequest,
)
from satis_webhook.core.rebuild_service import (
    FAILURE_MESSAGE,
    SUCCESS_MESSAGE,
    RebuildService,
    check_preconditions,
    describe_result,
)
from satis_webhook.tests.fakes import (
    FakeConfigLoader,
    FakeProcessRunner,
    FakeRepositoryCatalog,
)

SECRET = "hunter2"
CLONE_URL = "https://github.com/acme/widgets.git"
SSH_URL = "git@github.com:acme/widgets.git"


@pytest.fixture
def satis_dir(tmp_path, monkeypatch):
    """A working directory with bin/satis, satis.json and web/."""
    (tmp_path / "bin").mkdir()
    (tmp_path / "bin" / "satis").write_text("#!/bin/sh\n")
    (tmp_path / "satis.json").write_text(json.dumps({"repositories": []}))
    (tmp_path / "web").mkdir()
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def config_loader():
    return FakeConfigLoader(RebuildConfig(secret=SECRET))


@pytest.fixture
def catalog():
    return FakeRepositoryCatalog(["https://github.com/acme/other.git", SSH_URL])


@pytest.fixture
def runner():
    return FakeProcessRunner()


@pytest.fixture
def service(config_loader, catalog, runner):
    return RebuildService(
        config_loader=config_loader,
        catalog=catalog,
        runner=runner,
        config_file="config.yml",
    )


def github_request(body: bytes, secret: str = SECRET, client_ip: str = "127.0.0.1"):
    signature = "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return WebhookRequest(
        client_ip=client_ip,
        headers={"X-GitHub-Event": "push", "X-Hub-Signature-256": signature},
        body_reader=lambda: body,
    )


def push_body(clone_url: str = CLONE_URL, ssh_url: str = SSH_URL) -> bytes:
    return json.dumps({"repository": {"clone_url": clone_url, "ssh_url": ssh_url}}).encode()


class RecordingHeaders(dict):
    """Header mapping that records whether anything looked inside."""

    touched = False

    def items(self):
        RecordingHeaders.touched = True
        return super().items()

    def get(self, key, default=None):
        RecordingHeaders.touched = True
        return super().get(key, default)


class TestPreconditions:
    """Tests for configured path checks."""

    def test_all_present(self, satis_dir):
        assert check_preconditions(RebuildConfig()) == []

    def test_missing_bin_and_webroot_reported_in_order(self, tmp_path, monkeypatch):
        (tmp_path / "satis.json").write_text("{}")
        monkeypatch.chdir(tmp_path)

        assert check_preconditions(RebuildConfig()) == [
            "The Satis bin could not be found.",
            "The webroot directory could not be found.",
        ]

    def test_everything_missing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert len(check_preconditions(RebuildConfig())) == 3

    def test_missing_bin_and_webroot_stop_delivery_without_reading_request(
        self, tmp_path, monkeypatch, config_loader, catalog, runner
    ):
        """Preconditions fail before headers or body are looked at."""
        (tmp_path / "satis.json").write_text("{}")
        monkeypatch.chdir(tmp_path)
        RecordingHeaders.touched = False

        def body_reader():
            raise AssertionError("body read before preconditions")

        service = RebuildService(config_loader, catalog, runner)
        request = WebhookRequest("127.0.0.1", RecordingHeaders({"X-GitHub-Event": "push"}), body_reader)

        with pytest.raises(PreconditionFailed) as exc_info:
            service.plan_delivery(request)

        assert exc_info.value.exit_code == -1
        assert exc_info.value.errors == (
            "The Satis bin could not be found.",
            "The webroot directory could not be found.",
        )
        assert exc_info.value.message.splitlines()[1:] == [
            "- The Satis bin could not be found.",
            "- The webroot directory could not be found.",
        ]
        assert RecordingHeaders.touched is False
        assert runner.runs == []


class TestPlanDelivery:
    """Tests for turning deliveries into build plans."""

    def test_github_push_for_tracked_repository_is_scoped(self, satis_dir, service, catalog):
        plan = service.plan_delivery(github_request(push_body()))

        assert plan.provider is Provider.GITHUB
        assert plan.repository_url == SSH_URL
        assert plan.scoped
        assert plan.command.argv == (
            "bin/satis", "build", "--repository-url", SSH_URL, "satis.json", "web/",
        )
        assert catalog.load_calls == ["satis.json"]

    def test_untracked_repository_falls_back_to_full_rebuild(self, satis_dir, service):
        body = push_body("https://github.com/acme/unknown.git", "git@github.com:acme/unknown.git")
        plan = service.plan_delivery(github_request(body))

        assert plan.repository_url is None
        assert plan.command.argv == ("bin/satis", "build", "satis.json", "web/")

    def test_general_delivery_is_full_rebuild_without_catalog(self, satis_dir, service, catalog):
        request = WebhookRequest("127.0.0.1", {"User-Agent": "curl/8.0"}, lambda: b"")
        plan = service.plan_delivery(request)

        assert plan.provider is Provider.GENERAL
        assert plan.command.argv == ("bin/satis", "build", "satis.json", "web/")
        assert catalog.load_calls == []

    def test_bad_signature_raises_before_catalog_or_build(
        self, satis_dir, service, catalog, runner
    ):
        with pytest.raises(AuthenticationFailed) as exc_info:
            service.plan_delivery(github_request(push_body(), secret="wrong"))

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Hook secret does not match."
        assert catalog.load_calls == []
        assert runner.runs == []

    def test_unauthorized_ip_denied_with_empty_message(self, satis_dir, config_loader, service):
        config_loader.config = RebuildConfig(secret=SECRET, authorized_ips=("10.0.0.0/8",))

        with pytest.raises(AccessDenied) as exc_info:
            service.plan_delivery(github_request(push_body(), client_ip="192.168.1.1"))

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == ""

    def test_authorized_ip_allowed(self, satis_dir, config_loader, service):
        config_loader.config = RebuildConfig(secret=SECRET, authorized_ips="10.0.0.0/8")
        plan = service.plan_delivery(github_request(push_body(), client_ip="10.1.2.3"))
        assert plan.scoped

    def test_ip_checked_before_preconditions(self, tmp_path, monkeypatch, config_loader, service):
        monkeypatch.chdir(tmp_path)
        config_loader.config = RebuildConfig(authorized_ips="10.0.0.1")

        with pytest.raises(AccessDenied):
            service.plan_delivery(WebhookRequest("10.0.0.2", {}))

    def test_missing_configuration(self, satis_dir, config_loader, service):
        config_loader.missing = True

        with pytest.raises(ConfigurationMissing) as exc_info:
            service.plan_delivery(WebhookRequest("127.0.0.1", {}))

        assert "config.yml.dist" in exc_info.value.message

    def test_config_loaded_on_every_request(self, satis_dir, config_loader, service):
        request = WebhookRequest("127.0.0.1", {})
        service.plan_delivery(request)
        service.plan_delivery(request)
        assert config_loader.loaded_files == ["config.yml", "config.yml"]

    def test_user_wraps_plan_in_sudo(self, satis_dir, config_loader, service):
        config_loader.config = RebuildConfig(secret=SECRET, user="deploy")
        plan = service.plan_delivery(github_request(push_body()))
        assert plan.command.argv[:4] == ("sudo", "-u", "deploy", "-i")

    def test_timeout_carried_into_plan(self, satis_dir, config_loader, service):
        config_loader.config = RebuildConfig(timeout=30)
        plan = service.plan_delivery(WebhookRequest("127.0.0.1", {}))
        assert plan.timeout == 30


class TestPlanManual:
    """Tests for operator-initiated rebuilds."""

    def test_full_rebuild(self, satis_dir, service):
        plan = service.plan_manual()
        assert plan.command.argv == ("bin/satis", "build", "satis.json", "web/")

    def test_scoped_rebuild(self, satis_dir, service):
        plan = service.plan_manual("git@host:repo.git")
        assert plan.repository_url == "git@host:repo.git"

    def test_preconditions_apply(self, tmp_path, monkeypatch, service):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(PreconditionFailed):
            service.plan_manual()


class TestExecute:
    """Tests for running a plan and reporting progress."""

    def test_progress_markers_and_success_line(self, satis_dir, service, runner):
        runner.add_output(OutputStream.STDOUT, "Scanning packages\n")
        runner.add_output(OutputStream.STDERR, "Warning: slow mirror\n")
        runner.add_output(OutputStream.STDOUT, "Writing web/packages.json\n")
        written: list[str] = []

        result = service.execute(service.plan_manual(), written.append)

        assert result.exit_code == 0
        assert "".join(written) == f".E.\n\n{SUCCESS_MESSAGE}\n"

    def test_failure_line(self, satis_dir, service, runner):
        runner.exit_code = 1
        written: list[str] = []

        result = service.execute(service.plan_manual(), written.append)

        assert result.exit_code == 1
        assert "".join(written).endswith(f"{FAILURE_MESSAGE}\n")

    def test_stderr_is_logged(self, satis_dir, service, runner, caplog):
        runner.add_output(OutputStream.STDERR, "could not clone\n")
        with caplog.at_level("WARNING"):
            service.execute(service.plan_manual(), lambda text: None)
        assert "could not clone" in caplog.text

    def test_logged_command_quotes_arguments(self, satis_dir, service, caplog):
        with caplog.at_level("INFO"):
            service.execute(service.plan_manual("repo with spaces; rm -rf"), lambda text: None)
        assert "--repository-url 'repo with spaces; rm -rf' satis.json" in caplog.text

    def test_runner_receives_argv_and_timeout(self, satis_dir, config_loader, service, runner):
        config_loader.config = RebuildConfig(user="deploy", timeout=45)
        service.execute(service.plan_manual("A"), lambda text: None)

        argv, timeout = runner.runs[0]
        assert argv == (
            "sudo", "-u", "deploy", "-i", "bin/satis", "build",
            "--repository-url", "A", "satis.json", "web/",
        )
        assert timeout == 45

    def test_timeout_reported(self, satis_dir, service, runner):
        runner.exit_code = -1
        runner.timed_out = True
        written: list[str] = []

        service.execute(service.plan_manual(), written.append)

        assert "timed out" in "".join(written)

    def test_builds_are_serialized(self, satis_dir, config_loader, catalog):
        """A second build waits for the first to finish."""
        started = threading.Event()
        release = threading.Event()
        active = []
        overlap = []

        class BlockingRunner(FakeProcessRunner):
            def run(self, argv, on_output, timeout=None):
                if active:
                    overlap.append(True)
                active.append(True)
                started.set()
                release.wait(5)
                active.pop()
                return BuildResult(exit_code=0)

        service = RebuildService(config_loader, catalog, BlockingRunner())
        plan = service.plan_manual()
        first = threading.Thread(target=service.execute, args=(plan, lambda text: None))
        second = threading.Thread(target=service.execute, args=(plan, lambda text: None))

        first.start()
        assert started.wait(5)
        second.start()
        time.sleep(0.1)
        release.set()
        first.join(5)
        second.join(5)

        assert overlap == []


class TestDescribeResult:
    """Tests for the exit-code message mapping."""

    def test_zero_is_success(self):
        assert describe_result(BuildResult(exit_code=0)) == "Successful rebuild!"

    @pytest.mark.parametrize("exit_code", [1, -1, 2, 255])
    def test_non_zero_is_failure(self, exit_code):
        assert describe_result(BuildResult(exit_code=exit_code)) == "Oops! An error occured!"
