"""Core of the host tooling.

What lives here:
- domain models, configuration, errors and the operation context;
- the two services (`host_trust`, `service_installer`).

The core does not print and does not exit the process: it raises typed
errors and returns typed results that the CLI maps onto exit codes.
"""
