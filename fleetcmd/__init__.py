"""Fleet command runner.

Runs an ordered list of shell commands against a fleet of network devices
over interactive SSH sessions, with bounded concurrency, per-device output
capture, and a failure log for the devices that could not be processed.
"""

__version__ = "1.0.0"
