"""Version Drift Reconciler (VDR).

Single-process watcher that keeps named docker containers in step with the
version an upstream catalog (the Steam Web API) publishes for them:
 - per-container tracked version, persisted across restarts
 - drift detection on a fixed poll interval
 - remediation via restart / pull / build / custom command
 - a small status API and CLI

Failures are always contained to the container they concern.
"""

__version__ = "0.3.0"
