"""
Deploy Pipeline

Runs the deployment stages strictly in order. Each stage returns a tagged
StageResult; the first failure is reported with its stage label and halts
the run. Nothing is retried here.

    EnvPrep -> InputValidation -> RegistryAuth -> SshConfigure
      -> KeyInstall -> HostTrust -> ConnectivityProbe -> Deploy -> DeployStatusPoll
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from stackdeploy.config import DeployConfig, is_debug
from stackdeploy.constants import DEFAULT_ENV_FILE_PATH
from stackdeploy.env_file import load_env_file
from stackdeploy.exceptions import ConfigurationError, StackDeployError
from stackdeploy.models.results import StageResult
from stackdeploy.runner import CommandRunner
from stackdeploy.services import (
    ConnectivityProber,
    HostTrustConfigurator,
    KeyInstaller,
    PassphraseUnlocker,
    RegistryClient,
    SSHAgent,
    StackDeployer,
)
from stackdeploy.services.unlock import log_key_diagnostics


@dataclass
class Stage:
    """One pipeline step."""

    name: str
    label: str
    action: Callable[[], StageResult]
    # None means the error message itself is the failure line
    failure_message: Optional[Callable[[], str]] = None


class DeployPipeline:
    """
    Sequences the deployment.

    Responsibilities:
    - Export the env file and build the immutable config
    - Validate inputs before any registry, SSH or network side effect
    - Run each stage and stop at the first failure
    """

    def __init__(
        self,
        runner: CommandRunner,
        unlocker_factory: Callable[..., PassphraseUnlocker] = PassphraseUnlocker,
    ):
        """
        Initialize pipeline.

        Args:
            runner: CommandRunner; its environment is the run environment
            unlocker_factory: Builds the passphrase automaton (runner, timeout=...)
        """
        self.runner = runner
        self.logger = runner.logger
        self.unlocker_factory = unlocker_factory
        self.config: Optional[DeployConfig] = None
        self.results: list[StageResult] = []

    @property
    def environ(self) -> dict:
        return self.runner.env

    def stages(self) -> list[Stage]:
        return [
            Stage("EnvPrep", "Environment Variables", self.prepare_env,
                  lambda: "Failed to load env file"),
            Stage("InputValidation", "Input", self.validate_inputs),
            Stage("RegistryAuth", "Container Registry", self.registry_login,
                  lambda: f"Login to {RegistryClient.display_name(self.config.registry)} "
                          f"as {self.config.username} failed"),
            Stage("SshConfigure", "SSH client", self.configure_ssh,
                  lambda: "Configuration failed"),
            Stage("KeyInstall", "SSH client", self.install_key,
                  lambda: "Private key failed"),
            Stage("HostTrust", "SSH remote", self.trust_host,
                  lambda: f"Server {self.config.remote_host} on port "
                          f"{self.config.remote_port} not available"),
            Stage("ConnectivityProbe", "SSH connect", self.probe,
                  lambda: "Failed to connect to remote server"),
            Stage("Deploy", "Deploy", self.deploy,
                  lambda: f"Failed to deploy {self.config.stack_name} "
                          f"from file {self.config.stack_file}"),
            Stage("DeployStatusPoll", "Deploy", self.wait,
                  lambda: "Failed"),
        ]

    def run(self, until: Optional[str] = None) -> int:
        """
        Execute stages in order.

        Args:
            until: Name of the last stage to run (all stages if None)

        Returns:
            Process exit code: 0 on success, 1 on the first failed stage
        """
        for stage in self.stages():
            result = self._execute(stage)
            self.results.append(result)
            if result.is_failure:
                return 1
            if stage.name == until:
                break
        return 0

    def _execute(self, stage: Stage) -> StageResult:
        self.logger.log(f"Stage: {stage.name}", "INFO")
        try:
            result = stage.action()
        except StackDeployError as e:
            if stage.failure_message is None:
                result = StageResult.failure(stage.label, e.message, cause=e.context)
            else:
                result = StageResult.failure(
                    stage.label, stage.failure_message(), cause=e.format_message()
                )
            self.logger.stage_failure(result.stage, result.message, result.cause)
            return result

        if result.message:
            self.logger.stage_success(result.stage, result.message)
        return result

    # --- stages -------------------------------------------------------------

    def prepare_env(self) -> StageResult:
        label = "Environment Variables"
        content = self.environ.get("ENV_FILE", "")
        if content:
            path = Path(
                self.environ.get("ENV_FILE_PATH") or DEFAULT_ENV_FILE_PATH
            ).expanduser()
            values = load_env_file(content, path)
            if values:
                before = len(self.environ)
                self.runner.export(values)
                self._update_verbosity()
                self.logger.debug(f"Environment vars before: {before}")
                self.logger.debug(f"Environment vars after: {len(self.environ)}")
                return StageResult.success(label, "Additional values")

        self._update_verbosity()
        return StageResult.skipped(label, "")

    def _update_verbosity(self) -> None:
        if is_debug(self.environ.get("DEBUG")) and not self.logger.verbose:
            self.logger.verbose = True
            self.logger.log("Verbose logging", "INFO")

    def validate_inputs(self) -> StageResult:
        config = DeployConfig.from_env(self.environ)
        self.logger.add_secret(config.private_key_password)
        self.logger.add_secret(config.password)

        validation = config.validate()
        if validation.has_errors:
            raise ConfigurationError(
                validation.errors[0],
                context="; ".join(validation.errors[1:]) or None,
            )
        for warning in validation.warnings:
            self.logger.log(warning, "WARNING")

        self.config = config
        if self.logger.verbose:
            services = ", ".join(config.stack_services()) or "(none)"
            self.logger.debug(f"Target: {config.target.docker_host}")
            self.logger.debug(f"Stack services: {services}")
        return StageResult.success("Input", "Validated")

    def registry_login(self) -> StageResult:
        label = "Container Registry"
        config = self.config
        if not config.registry_auth_enabled:
            return StageResult.skipped(label, "No authentication provided")

        RegistryClient(self.runner).login(config.registry, config.username, config.password)
        name = RegistryClient.display_name(config.registry)
        return StageResult.success(label, f"Logged in {name} as {config.username}")

    def configure_ssh(self) -> StageResult:
        KeyInstaller(self.config.paths).write_client_config()
        return StageResult.success("SSH client", "Configured")

    def install_key(self) -> StageResult:
        config = self.config
        key_pair = config.key_pair
        paths = config.paths

        unlocker = None
        if key_pair.is_protected:
            unlocker = self.unlocker_factory(self.runner, timeout=config.unlock_timeout)
            unlocker.check_prerequisites()

        KeyInstaller(paths).install(key_pair)

        agent = SSHAgent(self.runner)
        agent.start()

        if unlocker is not None:
            if self.logger.verbose:
                log_key_diagnostics(self.runner, paths.private_key, key_pair.passphrase)
            unlocker.unlock(paths.private_key, key_pair.passphrase)
        else:
            agent.add_key(paths.private_key)

        return StageResult.success("SSH client", "Added private key")

    def trust_host(self) -> StageResult:
        store = HostTrustConfigurator(self.runner, self.config.paths).configure(
            self.config.target
        )
        return StageResult.success("SSH remote", f"Keys added to {store.known_hosts_path}")

    def probe(self) -> StageResult:
        prober = ConnectivityProber(
            self.runner, self.config.paths, verbose=self.logger.verbose
        )
        prober.probe(self.config.target)
        return StageResult.success("SSH connect", "Success")

    def deploy(self) -> StageResult:
        deployer = StackDeployer(self.runner, self.config.stack_wait_script)
        deployer.deploy(self.config.target, self.config.deployment)
        return StageResult.success("Deploy", "Updated services")

    def wait(self) -> StageResult:
        self.logger.stage_success("Deploy", "Checking status")
        deployer = StackDeployer(self.runner, self.config.stack_wait_script)
        deployer.wait(self.config.deployment)
        return StageResult.success("Deploy", "Completed")
