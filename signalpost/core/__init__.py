"""Core invocation pipeline: executor, classifier, lifecycle, runtime and codec."""
