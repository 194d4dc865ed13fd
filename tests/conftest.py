import io
import tarfile

import pytest

from cm_installer.configuration import Configuration
from cm_installer.provisioners.base import Provisioner


class FakeProvisioner(Provisioner):
    """Provisioner that records hook calls instead of running a backend."""

    name = "fake"

    def __init__(self, config, *, update_ok=True, client_results=(True,), masterless_ok=True, on_apply=None, **kwargs):
        super().__init__(config, **kwargs)
        self.calls = []
        self.update_ok = update_ok
        self.client_results = list(client_results)
        self.masterless_ok = masterless_ok
        self.on_apply = on_apply

    @property
    def private_key_path(self):
        return self.target_path("etc/fake/pki/private.pem")

    @property
    def public_key_path(self):
        return self.target_path("etc/fake/pki/public.pem")

    def update_configuration(self):
        self.calls.append("update_configuration")
        return self.update_ok

    def apply_client_mode(self, stdout, stderr):
        self.calls.append("apply_client_mode")
        if self.on_apply:
            self.on_apply()
        return self.client_results.pop(0) if self.client_results else False

    def apply_masterless_mode(self, stdout, stderr):
        self.calls.append("apply_masterless_mode")
        if self.on_apply:
            self.on_apply()
        return self.masterless_ok


@pytest.fixture
def target_root(tmp_path):
    root = tmp_path / "mnt"
    root.mkdir()
    return root


@pytest.fixture
def make_config(target_root):
    def _make(**values):
        values.setdefault("type", "fake")
        return Configuration.from_mapping(values, target_root=str(target_root))

    return _make


@pytest.fixture
def make_provisioner():
    def _make(config, **kwargs):
        return FakeProvisioner(config, **kwargs)

    return _make


@pytest.fixture
def config_archive(tmp_path):
    """A tgz with salt/top.sls and pillar/top.sls, returned as a file:// URL."""

    archive = tmp_path / "remote" / "config.tgz"
    archive.parent.mkdir()
    with tarfile.open(archive, "w:gz") as tar:
        for name, body in [("salt/top.sls", b"base:\n  '*':\n    - motd\n"), ("pillar/top.sls", b"base: {}\n")]:
            info = tarfile.TarInfo(name)
            info.size = len(body)
            tar.addfile(info, io.BytesIO(body))
    return archive.as_uri()


@pytest.fixture
def keys_dir(tmp_path):
    d = tmp_path / "keys"
    d.mkdir()
    (d / "default.key").write_text("PRIVATE\n")
    (d / "default.pub").write_text("PUBLIC\n")
    return d
