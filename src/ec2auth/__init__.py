"""
ec2auth: Vault EC2 login agent.

ec2auth proves to a Vault server that it runs on a specific EC2 instance,
writes the issued client token and the re-login nonce to two flat files,
and logs in again at the midpoint of every lease.

Package layout (src/ec2auth/):
  core/         config, identity proof, credential store, login, scheduler
  os/systemd/   systemd user unit for agent mode
  cli/          Click CLI entry point
"""

__version__ = "0.3.0"
__all__ = ["__version__"]
