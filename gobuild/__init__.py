"""gobuild - run declarative build jobs inside disposable containers.

This package reads a job list from a YAML file, executes each job's shell
scripts inside a container, streams container output into the log and
reports a per-job status table at the end.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
