"""ssh-keyctl: generate, deploy, revoke and renew per-host SSH identities."""

__version__ = "0.1.0"
