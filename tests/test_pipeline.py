import functools
import stat

from conftest import FakeRunner, FakeUnlocker, fail, ok, output_lines, output_of

from stackdeploy.models.results import ResultStatus
from stackdeploy.pipeline import DeployPipeline
from stackdeploy.services.unlock import PassphraseUnlocker


def _pipeline(runner, expected="right horse") -> DeployPipeline:
    factory = functools.partial(FakeUnlocker, expected=expected)
    return DeployPipeline(runner, unlocker_factory=factory)


def test_full_run_reports_every_stage_in_order(happy_runner, console, ssh_dir):
    pipeline = _pipeline(happy_runner)

    assert pipeline.run() == 0
    assert output_lines(console) == [
        "Input: Validated",
        "Container Registry: No authentication provided",
        "SSH client: Configured",
        "SSH client: Added private key",
        f"SSH remote: Keys added to {ssh_dir / 'known_hosts'}",
        "SSH connect: Success",
        "Deploy: Updated services",
        "Deploy: Checking status",
        "Deploy: Completed",
    ]
    assert all(not r.is_failure for r in pipeline.results)


def test_full_run_issues_expected_commands(happy_runner, ssh_dir, stack_file):
    assert _pipeline(happy_runner).run() == 0

    assert happy_runner.called("ssh-keyscan") == [["ssh-keyscan", "-p", "2222", "h"]]
    assert happy_runner.called("ssh-add") == [["ssh-add", str(ssh_dir / "docker")]]
    assert happy_runner.called("ssh") == [
        ["ssh", "-F", str(ssh_dir / "config"), "-o", "BatchMode=yes",
         "-p", "2222", "deployer@h", "whoami"]
    ]
    assert happy_runner.called("docker", "stack", "deploy") == [
        ["docker", "stack", "deploy", "--with-registry-auth", "-c", str(stack_file), "svc1"]
    ]
    assert happy_runner.called("/stack-wait.sh") == [["/stack-wait.sh", "-t", "60", "svc1"]]
    assert happy_runner.env["DOCKER_HOST"] == "ssh://deployer@h:2222"
    assert happy_runner.env["SSH_AUTH_SOCK"] == "/tmp/ssh-test/agent.41"


def test_full_run_writes_ssh_files(happy_runner, ssh_dir):
    assert _pipeline(happy_runner).run() == 0

    assert (ssh_dir / "docker").read_text().endswith("-----END OPENSSH PRIVATE KEY-----\n")
    assert stat.S_IMODE((ssh_dir / "docker").stat().st_mode) == 0o600
    assert stat.S_IMODE((ssh_dir / "docker.pub").stat().st_mode) == 0o644
    assert (ssh_dir / "config").read_text() == f"UserKnownHostsFile={ssh_dir / 'known_hosts'}\n"
    assert "[h]:2222 ssh-ed25519" in (ssh_dir / "known_hosts").read_text()


def test_protected_key_is_unlocked_with_passphrase(happy_runner, ssh_dir):
    happy_runner.env["REMOTE_PRIVATE_KEY_PASSWORD"] = "right horse"
    unlockers = []

    def factory(runner, timeout):
        unlocker = FakeUnlocker(runner, timeout=timeout)
        unlockers.append(unlocker)
        return unlocker

    assert DeployPipeline(happy_runner, unlocker_factory=factory).run() == 0
    assert unlockers[0].unlocked == [ssh_dir / "docker"]
    assert unlockers[0].timeout == 20
    assert happy_runner.called("ssh-add") == []


def test_wrong_passphrase_halts_at_key_stage(happy_runner, console):
    happy_runner.env["REMOTE_PRIVATE_KEY_PASSWORD"] = "wrong"
    pipeline = _pipeline(happy_runner)

    assert pipeline.run() == 1
    text = output_of(console)
    assert "SSH client: Private key failed" in text
    assert "Wrong passphrase provided" in text
    assert happy_runner.called("docker") == []
    assert happy_runner.called("ssh-keyscan") == []
    assert pipeline.results[-1].status == ResultStatus.FAILURE


def test_passphrase_from_action_input_prefix(happy_runner):
    happy_runner.env["INPUT_REMOTE_PRIVATE_KEY_PASSWORD"] = "right horse"

    assert _pipeline(happy_runner).run() == 0
    assert happy_runner.called("ssh-add") == []


def test_missing_remote_host_fails_before_side_effects(happy_runner, console, ssh_dir):
    del happy_runner.env["REMOTE_HOST"]

    assert _pipeline(happy_runner).run() == 1
    assert output_lines(console) == ["Input: remote_host is required!"]
    assert happy_runner.calls == []
    assert not ssh_dir.exists()


def test_missing_stack_file_fails_before_registry_login(happy_runner, console, tmp_path, ssh_dir):
    happy_runner.env["STACK_FILE"] = str(tmp_path / "missing.yml")
    happy_runner.env["USERNAME"] = "bot"
    happy_runner.env["PASSWORD"] = "token"

    assert _pipeline(happy_runner).run() == 1
    assert f"{tmp_path / 'missing.yml'} does not exist." in output_of(console)
    assert happy_runner.calls == []
    assert not ssh_dir.exists()


def test_numeric_service_name_is_an_input_failure(happy_runner, console, tmp_path):
    path = tmp_path / "numbered.yml"
    path.write_text("services:\n  1:\n    image: x\n")
    happy_runner.env["STACK_FILE"] = str(path)

    pipeline = _pipeline(happy_runner)
    assert pipeline.run() == 1
    assert output_lines(console) == [f"Input: {path}: service name 1 is not a string"]
    assert pipeline.results[-1].stage == "Input"
    assert happy_runner.calls == []


def test_non_utf8_stack_file_is_an_input_failure(happy_runner, console, tmp_path):
    path = tmp_path / "binary.yml"
    path.write_bytes(b"\xff\xfe\x00s")
    happy_runner.env["STACK_FILE"] = str(path)

    assert _pipeline(happy_runner).run() == 1
    assert output_lines(console) == [f"Input: {path} is not valid UTF-8"]


def test_debug_run_lists_stack_services(happy_runner, console):
    happy_runner.env["DEBUG"] = "1"

    assert _pipeline(happy_runner).run(until="InputValidation") == 0
    assert "Debug: Stack services: web, worker" in output_lines(console)


def test_short_password_leaves_stage_lines_intact(happy_runner, console):
    happy_runner.env.update({"USERNAME": "bot", "PASSWORD": "e"})

    assert _pipeline(happy_runner).run() == 0
    lines = output_lines(console)
    assert lines[:2] == ["Input: Validated", "Container Registry: Logged in docker.io as bot"]
    assert lines[-1] == "Deploy: Completed"


def test_registry_login_uses_password_stdin(happy_runner, console):
    happy_runner.env.update(
        {"REGISTRY": "registry.example.com", "USERNAME": "bot", "PASSWORD": "t0ken"}
    )

    assert _pipeline(happy_runner).run() == 0
    login = happy_runner.called("docker", "login")
    assert login == [["docker", "login", "registry.example.com", "-u", "bot", "--password-stdin"]]
    assert happy_runner.inputs[happy_runner.calls.index(login[0])] == "t0ken"
    assert "Container Registry: Logged in registry.example.com as bot" in output_lines(console)


def test_registry_login_without_registry_defaults_to_docker_hub(happy_runner, console):
    happy_runner.env.update({"USERNAME": "bot", "PASSWORD": "t0ken"})

    assert _pipeline(happy_runner).run() == 0
    assert happy_runner.called("docker", "login") == [
        ["docker", "login", "-u", "bot", "--password-stdin"]
    ]
    assert "Container Registry: Logged in docker.io as bot" in output_lines(console)


def test_registry_login_failure_halts(happy_runner, console):
    happy_runner.env.update({"REGISTRY": "r.example", "USERNAME": "bot", "PASSWORD": "t0ken"})
    happy_runner.respond(["docker", "login"], fail(1, "unauthorized"))

    assert _pipeline(happy_runner).run() == 1
    text = output_of(console)
    assert "Container Registry: Login to r.example as bot failed" in text
    assert "t0ken" not in text
    assert happy_runner.called("ssh-keyscan") == []


def test_unreachable_host(happy_runner, console):
    happy_runner.respond(["ssh-keyscan"], ok(""))

    assert _pipeline(happy_runner).run() == 1
    assert "SSH remote: Server h on port 2222 not available" in output_of(console)
    assert happy_runner.called("ssh") == []


def test_probe_user_mismatch(happy_runner, console):
    happy_runner.respond(["ssh"], ok("root\n"))

    assert _pipeline(happy_runner).run() == 1
    text = output_of(console)
    assert "SSH connect: Failed to connect to remote server" in text
    assert "expected 'deployer'" in text
    assert happy_runner.called("docker") == []


def test_deploy_failure(happy_runner, console, stack_file):
    happy_runner.respond(["docker", "stack", "deploy"], fail(1, "network not found"))

    assert _pipeline(happy_runner).run() == 1
    assert f"Deploy: Failed to deploy svc1 from file {stack_file}" in output_of(console)
    assert happy_runner.called("/stack-wait.sh") == []


def test_status_poll_failure(happy_runner, console):
    happy_runner.respond(["/stack-wait.sh"], fail(1))

    assert _pipeline(happy_runner).run() == 1
    lines = output_lines(console)
    assert "Deploy: Checking status" in lines
    assert "Deploy: Failed" in lines
    assert "Deploy: Completed" not in lines


def test_env_file_values_are_exported(happy_runner, console, tmp_path):
    del happy_runner.env["STACK_NAME"]
    happy_runner.env["ENV_FILE"] = "# deploy settings\n\nSTACK_NAME=from-env\nAPI_URL=https://api.example\n"

    assert _pipeline(happy_runner).run() == 0
    assert output_lines(console)[0] == "Environment Variables: Additional values"
    assert happy_runner.env["API_URL"] == "https://api.example"
    assert (tmp_path / "dot.env").exists()
    assert happy_runner.called("/stack-wait.sh") == [["/stack-wait.sh", "-t", "60", "from-env"]]


def test_env_file_with_only_comments_prints_nothing(happy_runner, console):
    happy_runner.env["ENV_FILE"] = "# nothing here\n\n"

    assert _pipeline(happy_runner).run() == 0
    assert output_lines(console)[0] == "Input: Validated"


def test_debug_from_env_file_enables_verbose_probe(happy_runner, logger):
    happy_runner.env["ENV_FILE"] = "DEBUG=1\n"

    assert _pipeline(happy_runner).run() == 0
    assert logger.verbose
    assert "-vvv" in happy_runner.called("ssh")[0]


def test_run_until_validation_stops_early(happy_runner, console):
    assert _pipeline(happy_runner).run(until="InputValidation") == 0
    assert output_lines(console) == ["Input: Validated"]
    assert happy_runner.calls == []


def test_missing_unlock_prerequisite_fails_before_key_is_written(happy_runner, console, ssh_dir):
    happy_runner.env["REMOTE_PRIVATE_KEY_PASSWORD"] = "right horse"

    def factory(runner, timeout):
        return PassphraseUnlocker(runner, timeout=timeout, command=("no-such-ssh-add-binary",))

    assert DeployPipeline(happy_runner, unlocker_factory=factory).run() == 1
    text = output_of(console)
    assert "SSH client: Private key failed" in text
    assert "'no-such-ssh-add-binary' is required but not found" in text
    assert not (ssh_dir / "docker").exists()
    assert happy_runner.called("ssh-agent") == []
