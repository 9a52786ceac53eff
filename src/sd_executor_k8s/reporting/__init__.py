from sd_executor_k8s.reporting.build_api import BuildStatusReporter

__all__ = ["BuildStatusReporter"]
