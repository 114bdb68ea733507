"""
stackdeploy - Docker stack deployment over SSH.

Submodules:
- stackdeploy.config - Immutable run configuration
- stackdeploy.pipeline - Stage sequencing
- stackdeploy.services - Key install, passphrase unlock, host trust, probe, docker
"""

__version__ = "1.0.0"
