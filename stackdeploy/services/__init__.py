"""
stackdeploy Services Layer

One service per pipeline concern; each raises a StackDeployError subclass on failure.
"""

from .key_installer import KeyInstaller
from .ssh_agent import SSHAgent
from .unlock import PassphraseUnlocker, UnlockOutcome, UnlockSession
from .host_trust import HostTrustConfigurator
from .prober import ConnectivityProber
from .registry import RegistryClient
from .stack import StackDeployer

__all__ = [
    "KeyInstaller",
    "SSHAgent",
    "PassphraseUnlocker",
    "UnlockOutcome",
    "UnlockSession",
    "HostTrustConfigurator",
    "ConnectivityProber",
    "RegistryClient",
    "StackDeployer",
]
