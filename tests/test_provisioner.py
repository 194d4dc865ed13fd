import pytest

from cm_installer.keys import KeysNotFetched
from cm_installer.lib.lock_guard import package_lock_path
from cm_installer.provisioners import base
from cm_installer.provisioners.base import Provisioner, ProvisionerStateError, State


@pytest.fixture
def lock(target_root):
    p = package_lock_path(str(target_root))
    p.parent.mkdir(parents=True)
    p.write_text("1234\n")
    return p


class TestAbstractBase:
    def test_cannot_instantiate_base(self, make_config):
        with pytest.raises(TypeError):
            Provisioner(make_config())

    def test_missing_hook_is_not_implemented(self, make_config):
        class Partial(Provisioner):
            private_key_path = public_key_path = None

            def update_configuration(self):
                return True

            def apply_masterless_mode(self, stdout, stderr):
                return True

            def apply_client_mode(self, stdout, stderr):
                return super().apply_client_mode(stdout, stderr)

        provisioner = Partial(make_config(master="m", auth_attempts=3, auth_time_out=0))
        provisioner.prepare()
        with pytest.raises(NotImplementedError):
            provisioner.run()
        assert provisioner.state is State.FAILED


class TestPrepare:
    def test_client_fetches_keys(self, make_config, make_provisioner, keys_dir, monkeypatch):
        monkeypatch.setattr(base, "fetch_keys", lambda url, private, public: True)
        provisioner = make_provisioner(make_config(master="m", keys_url=keys_dir.as_uri()))
        provisioner.prepare()
        assert provisioner.state is State.PREPARED

    def test_client_installs_keys_into_target(self, make_config, make_provisioner, keys_dir, target_root):
        provisioner = make_provisioner(make_config(master="m", keys_url=keys_dir.as_uri()))
        provisioner.prepare()
        assert (target_root / "etc/fake/pki/private.pem").read_text() == "PRIVATE\n"
        assert (target_root / "etc/fake/pki/public.pem").read_text() == "PUBLIC\n"

    def test_key_failure_aborts(self, make_config, make_provisioner, monkeypatch):
        monkeypatch.setattr(base, "fetch_keys", lambda url, private, public: False)
        provisioner = make_provisioner(make_config(master="m", keys_url="http://example.net/keys"))
        with pytest.raises(KeysNotFetched):
            provisioner.prepare()
        assert provisioner.state is State.FAILED

    def test_client_without_keys_url(self, make_config, make_provisioner, monkeypatch):
        called = []
        monkeypatch.setattr(base, "fetch_keys", lambda *a: called.append(a) or True)
        provisioner = make_provisioner(make_config(master="m"))
        provisioner.prepare()
        assert called == []
        assert provisioner.state is State.PREPARED

    def test_masterless_fetches_nothing(self, make_config, make_provisioner, monkeypatch):
        called = []
        monkeypatch.setattr(base, "fetch_keys", lambda *a: called.append(a) or True)
        monkeypatch.setattr(base, "fetch_config", lambda *a, **kw: called.append(a) or True)
        provisioner = make_provisioner(make_config(definitions_url="http://x/c.tgz", keys_url="http://x/keys"))
        provisioner.prepare()
        assert called == []

    def test_prepare_only_once(self, make_config, make_provisioner):
        provisioner = make_provisioner(make_config(master="m"))
        provisioner.prepare()
        with pytest.raises(ProvisionerStateError):
            provisioner.prepare()


class TestRunMasterless:
    def test_fetch_then_apply(self, make_config, make_provisioner, config_archive, target_root):
        provisioner = make_provisioner(make_config(definitions_url=config_archive))
        provisioner.prepare()

        assert provisioner.run() is True
        assert provisioner.calls == ["apply_masterless_mode"]
        assert provisioner.state is State.CONVERGED
        assert (provisioner.config.work_dir("local") / "salt" / "top.sls").exists()
        assert provisioner.config.work_dir("local").is_relative_to(target_root)

    def test_fetch_failure_skips_apply(self, make_config, make_provisioner, tmp_path):
        provisioner = make_provisioner(make_config(definitions_url=(tmp_path / "missing.tgz").as_uri()))
        provisioner.prepare()

        assert provisioner.run() is False
        assert provisioner.calls == []
        assert provisioner.state is State.FAILED

    def test_apply_failure(self, make_config, make_provisioner, config_archive):
        provisioner = make_provisioner(make_config(definitions_url=config_archive), masterless_ok=False)
        provisioner.prepare()
        assert provisioner.run() is False
        assert provisioner.calls == ["apply_masterless_mode"]

    def test_not_retried(self, make_config, make_provisioner, monkeypatch):
        fetches = []
        monkeypatch.setattr(base, "fetch_config", lambda *a, **kw: fetches.append(a) or False)
        provisioner = make_provisioner(make_config(definitions_url="http://x/c.tgz", auth_attempts=5))
        provisioner.prepare()
        assert provisioner.run() is False
        assert len(fetches) == 1


class TestRunClient:
    def test_update_then_apply(self, make_config, make_provisioner):
        provisioner = make_provisioner(make_config(master="m", auth_time_out=0))
        provisioner.prepare()
        assert provisioner.run() is True
        assert provisioner.calls == ["update_configuration", "apply_client_mode"]
        assert provisioner.state is State.CONVERGED

    def test_update_failure_skips_apply(self, make_config, make_provisioner):
        provisioner = make_provisioner(make_config(master="m", auth_attempts=10), update_ok=False)
        provisioner.prepare()
        assert provisioner.run() is False
        assert provisioner.calls == ["update_configuration"]

    def test_apply_retried_until_success(self, make_config, make_provisioner):
        provisioner = make_provisioner(
            make_config(master="m", auth_attempts=3, auth_time_out=0),
            client_results=[False, True],
        )
        provisioner.prepare()
        assert provisioner.run() is True
        assert provisioner.calls.count("apply_client_mode") == 2

    def test_apply_attempts_exhausted(self, make_config, make_provisioner):
        provisioner = make_provisioner(
            make_config(master="m", auth_attempts=3, auth_time_out=0),
            client_results=[False, False, False, True],
        )
        provisioner.prepare()
        assert provisioner.run() is False
        assert provisioner.calls.count("apply_client_mode") == 3
        assert provisioner.state is State.FAILED

    def test_sleeps_between_attempts(self, make_config, make_provisioner, monkeypatch):
        sleeps = []
        monkeypatch.setattr(base, "with_retries", _retries_with(sleeps.append))
        provisioner = make_provisioner(
            make_config(master="m", auth_attempts=3, auth_time_out=15),
            client_results=[False, False, False],
        )
        provisioner.prepare()
        provisioner.run()
        assert sleeps == [15, 15]

    def test_no_master_and_no_url_is_client(self, make_config, make_provisioner):
        provisioner = make_provisioner(make_config(auth_time_out=0))
        provisioner.prepare()
        assert provisioner.run() is True
        assert provisioner.calls == ["update_configuration", "apply_client_mode"]


def _retries_with(sleep):
    from cm_installer.lib.retry import with_retries

    def _with_retries(attempts, time_out, fn):
        return with_retries(attempts, time_out, fn, sleep=sleep)

    return _with_retries


class TestRunLifecycle:
    def test_run_requires_prepare(self, make_config, make_provisioner):
        provisioner = make_provisioner(make_config(master="m"))
        with pytest.raises(ProvisionerStateError):
            provisioner.run()

    def test_run_only_once(self, make_config, make_provisioner):
        provisioner = make_provisioner(make_config(master="m", auth_time_out=0))
        provisioner.prepare()
        provisioner.run()
        with pytest.raises(ProvisionerStateError):
            provisioner.run()

    def test_lock_suspended_while_applying(self, make_config, make_provisioner, lock):
        seen = []
        provisioner = make_provisioner(
            make_config(master="m", auth_time_out=0),
            on_apply=lambda: seen.append(lock.exists()),
        )
        provisioner.prepare()
        provisioner.run()
        assert seen == [False]
        assert lock.read_text() == "1234\n"

    def test_lock_restored_on_error(self, make_config, make_provisioner, lock):
        def boom():
            raise RuntimeError("backend crashed")

        provisioner = make_provisioner(make_config(master="m", auth_time_out=0), on_apply=boom)
        provisioner.prepare()
        with pytest.raises(RuntimeError):
            provisioner.run()
        assert lock.read_text() == "1234\n"
        assert provisioner.state is State.FAILED

    def test_services_enabled_after_success(self, make_config, make_provisioner, monkeypatch):
        provisioner = make_provisioner(make_config(master="m", auth_time_out=0))
        provisioner.services = ("fake-agent",)
        commands = []
        monkeypatch.setattr(provisioner, "run_in_target", lambda argv, **kw: commands.append(argv) or True)
        provisioner.prepare()
        assert provisioner.run() is True
        assert commands == [["systemctl", "enable", "fake-agent"]]

    def test_services_left_alone_when_disabled(self, make_config, make_provisioner, monkeypatch):
        provisioner = make_provisioner(make_config(master="m", auth_time_out=0, enable_services=False))
        provisioner.services = ("fake-agent",)
        commands = []
        monkeypatch.setattr(provisioner, "run_in_target", lambda argv, **kw: commands.append(argv) or True)
        provisioner.prepare()
        provisioner.run()
        assert commands == []

    def test_packages_default_empty(self, make_config, make_provisioner):
        assert make_provisioner(make_config()).packages() == {}


def test_masterless_fetch_uses_created_work_dir(make_config, make_provisioner, monkeypatch):
    seen = []

    def fake_fetch(url, work_dir, *, cwd=None):
        seen.append(work_dir.is_dir())
        return False

    monkeypatch.setattr(base, "fetch_config", fake_fetch)
    provisioner = make_provisioner(make_config(definitions_url="http://x/c.tgz"))
    provisioner.prepare()

    assert provisioner.run() is False
    assert seen == [True]
