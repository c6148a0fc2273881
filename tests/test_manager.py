"""
Tests for vagrantfleet.manager and vagrantfleet.scripts.app – whole runs with
ssh-keygen and vagrant replaced by a fake ``invoke.run``.
"""

import os
import shlex
from unittest.mock import patch

import pytest
import yaml
from invoke.runners import Result

from vagrantfleet.config import FleetConfig
from vagrantfleet.errors import (
    EngineInvocationError,
    KeyGenerationError,
    MachineNotRunningError,
    TopologyTooLargeError,
)
from vagrantfleet.manager import FleetManager
from vagrantfleet.scripts import app


class FakeTools:
    """Answers ssh-keygen and vagrant commands, recording every call."""

    def __init__(self, states=None, up_exit=0, keygen_exit=0):
        self.states = states or {}
        self.up_exit = up_exit
        self.keygen_exit = keygen_exit
        self.commands = []

    def __call__(self, command, **kwargs):
        self.commands.append(command)
        argv = shlex.split(command)

        if argv[0] == "ssh-keygen":
            if self.keygen_exit:
                return Result(command=command, exited=self.keygen_exit, stderr="denied")
            path = argv[argv.index("-f") + 1]
            with open(path, "w") as fobj:
                fobj.write("private")
            with open(path + ".pub", "w") as fobj:
                fobj.write("ssh-rsa AAAAfleet fleet@host\n")
            return Result(command=command, exited=0)

        sub_command = argv[1]
        if sub_command == "up":
            return Result(command=command, exited=self.up_exit, stderr="up failed")
        if sub_command == "status":
            name = argv[2]
            state = self.states.get(name, "running")
            return Result(command=command, exited=0, stdout=f"1700000000,{name},state,{state}\n")
        return Result(command=command, exited=0)

    @property
    def polled(self):
        return [shlex.split(c)[2] for c in self.commands if " status " in c]

    def count(self, fragment):
        return sum(1 for c in self.commands if fragment in c)


@pytest.fixture
def config(tmp_path):
    return FleetConfig(
        key_dir=str(tmp_path / "ssh"),
        key_name="test_machinekey",
        workdir=str(tmp_path / "vagrant_machines"),
        vm_count=3,
    )


class TestProvision:

    def test_all_running(self, config, capsys):
        tools = FakeTools()
        with patch("invoke.run", side_effect=tools):
            results = FleetManager(config).provision()

        assert [r.machine.hostname for r in results] == ["vm-1", "vm-2", "vm-3"]
        assert tools.count("ssh-keygen") == 1
        assert tools.count("vagrant up --parallel --no-color --no-tty") == 1
        assert tools.polled == ["vm-1", "vm-2", "vm-3"]

        vagrantfile = os.path.join(config.workdir_path, "Vagrantfile")
        with open(vagrantfile) as fobj:
            assert "ssh-rsa AAAAfleet fleet@host" in fobj.read()

        out = capsys.readouterr().out
        assert "vm-3: 192.168.56.13" in out
        assert f"ssh test1@192.168.56.11 -i {config.private_key_path}" in out

    def test_second_run_reuses_the_key(self, config):
        tools = FakeTools()
        with patch("invoke.run", side_effect=tools):
            FleetManager(config).provision()
            FleetManager(config).provision()
        assert tools.count("ssh-keygen") == 1

    def test_stopped_machine_stops_polling(self, config):
        tools = FakeTools(states={"vm-2": "stopped"})
        with patch("invoke.run", side_effect=tools):
            with pytest.raises(MachineNotRunningError):
                FleetManager(config).provision()
        assert tools.polled == ["vm-1", "vm-2"]

    def test_engine_failure(self, config):
        tools = FakeTools(up_exit=1)
        with patch("invoke.run", side_effect=tools):
            with pytest.raises(EngineInvocationError):
                FleetManager(config).provision()
        assert tools.polled == []

    def test_too_large_topology_fails_before_the_engine(self, config):
        tools = FakeTools()
        with patch("invoke.run", side_effect=tools):
            with pytest.raises(TopologyTooLargeError):
                FleetManager(config.override(vm_count=300)).provision()
        assert tools.count("vagrant") == 0
        assert not os.path.exists(os.path.join(config.workdir_path, "Vagrantfile"))

    def test_key_failure_aborts(self, config):
        tools = FakeTools(keygen_exit=1)
        with patch("invoke.run", side_effect=tools):
            with pytest.raises(KeyGenerationError):
                FleetManager(config).provision()
        assert tools.count("vagrant") == 0

    def test_zero_machines(self, config, capsys):
        tools = FakeTools()
        with patch("invoke.run", side_effect=tools):
            assert FleetManager(config.override(vm_count=0)).provision() == []
        assert tools.count("vagrant") == 0
        assert "(no machines)" in capsys.readouterr().out


class TestStatusAndDeprovision:

    def test_status_without_vagrantfile(self, config):
        with patch("invoke.run") as run:
            assert FleetManager(config).status() == []
        run.assert_not_called()

    def test_status_checks_every_machine(self, config, capsys):
        with patch("invoke.run", side_effect=FakeTools()):
            FleetManager(config).provision()
        capsys.readouterr()

        tools = FakeTools(states={"vm-1": "poweroff"})
        with patch("invoke.run", side_effect=tools):
            results = FleetManager(config).status()

        assert tools.polled == ["vm-1", "vm-2", "vm-3"]
        assert tools.count("vagrant up") == 0
        assert [r.ok for r in results] == [False, True, True]
        assert "vm-1: 192.168.56.11 [failed]" in capsys.readouterr().out

    def test_status_uses_the_provisioned_machines(self, config):
        with patch("invoke.run", side_effect=FakeTools()):
            FleetManager(config.override(vm_count=2)).provision()

        tools = FakeTools()
        with patch("invoke.run", side_effect=tools):
            results = FleetManager(config.override(vm_count=5)).status()

        assert tools.polled == ["vm-1", "vm-2"]
        assert [r.machine.ip_address for r in results] == ["192.168.56.11", "192.168.56.12"]

    def test_status_with_vagrantfile_but_no_machine_list(self, config):
        manager = FleetManager(config)
        os.makedirs(config.workdir_path)
        open(manager.vagrantfile_path, "w").close()
        with patch("invoke.run") as run:
            assert manager.status() == []
        run.assert_not_called()

    def test_deprovision_destroys(self, config):
        tools = FakeTools()
        manager = FleetManager(config)
        os.makedirs(config.workdir_path)
        open(manager.vagrantfile_path, "w").close()
        with patch("invoke.run", side_effect=tools):
            assert manager.deprovision() is True
        assert tools.commands == ["vagrant destroy --force"]

    def test_deprovision_without_vagrantfile(self, config):
        with patch("invoke.run") as run:
            assert FleetManager(config).deprovision() is False
        run.assert_not_called()


def _write_conf(tmp_path, config, **extra):
    data = {
        "key_dir": config.key_dir,
        "workdir": config.workdir,
        "vm_count": config.vm_count,
    }
    data.update(extra)
    conf = tmp_path / "fleet.yml"
    conf.write_text(yaml.safe_dump(data))
    return str(conf)


class TestCli:

    def test_success_exit_code(self, tmp_path, config, capsys):
        conf = _write_conf(tmp_path, config)
        with patch("invoke.run", side_effect=FakeTools()):
            assert app.main(["--conf", conf, "provision"]) == 0
        assert "vm-1: 192.168.56.11" in capsys.readouterr().out

    def test_provision_is_the_default_command(self, tmp_path, config):
        conf = _write_conf(tmp_path, config)
        tools = FakeTools()
        with patch("invoke.run", side_effect=tools):
            assert app.main(["--conf", conf]) == 0
        assert tools.count("vagrant up") == 1

    def test_count_override(self, tmp_path, config):
        conf = _write_conf(tmp_path, config)
        tools = FakeTools()
        with patch("invoke.run", side_effect=tools):
            assert app.main(["--conf", conf, "provision", "--count", "2"]) == 0
        assert tools.polled == ["vm-1", "vm-2"]

    def test_stopped_machine_exits_1(self, tmp_path, config):
        conf = _write_conf(tmp_path, config)
        tools = FakeTools(states={"vm-2": "stopped"})
        with patch("invoke.run", side_effect=tools):
            assert app.main(["--conf", conf, "provision"]) == 1
        assert "vm-3" not in tools.polled

    def test_engine_exit_code_is_propagated(self, tmp_path, config):
        conf = _write_conf(tmp_path, config)
        with patch("invoke.run", side_effect=FakeTools(up_exit=5)):
            assert app.main(["--conf", conf, "provision"]) == 5

    def test_other_fatal_errors_exit_2(self, tmp_path, config):
        conf = _write_conf(tmp_path, config, vm_count=1000)
        with patch("invoke.run", side_effect=FakeTools()):
            assert app.main(["--conf", conf, "provision"]) == 2

    def test_bad_config_exits_2(self, tmp_path):
        conf = tmp_path / "fleet.yml"
        conf.write_text("vm_cnt: 3\n")
        assert app.main(["--conf", str(conf), "status"]) == 2

    def test_unwritable_workdir_exits_2(self, tmp_path, config):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        conf = _write_conf(tmp_path, config, workdir=str(blocker / "machines"))
        tools = FakeTools()
        with patch("invoke.run", side_effect=tools):
            assert app.main(["--conf", conf, "provision"]) == 2
        assert tools.count("vagrant") == 0

    def test_status_after_count_override(self, tmp_path, config):
        conf = _write_conf(tmp_path, config, vm_count=5)
        with patch("invoke.run", side_effect=FakeTools()):
            assert app.main(["--conf", conf, "provision", "--count", "2"]) == 0

        tools = FakeTools()
        with patch("invoke.run", side_effect=tools):
            assert app.main(["--conf", conf, "status"]) == 0
        assert tools.polled == ["vm-1", "vm-2"]

    def test_status_exit_codes(self, tmp_path, config):
        conf = _write_conf(tmp_path, config)
        with patch("invoke.run", side_effect=FakeTools()):
            assert app.main(["--conf", conf, "provision"]) == 0
        with patch("invoke.run", side_effect=FakeTools()):
            assert app.main(["--conf", conf, "status"]) == 0
        with patch("invoke.run", side_effect=FakeTools(states={"vm-3": "saved"})):
            assert app.main(["--conf", conf, "status"]) == 1

    def test_version(self, capsys):
        assert app.main(["--version"]) == 0
        assert capsys.readouterr().out.startswith("v")
