"""Destination routing — delivers invocation outcomes to configured sinks.

The router picks at most one destination per invocation: the
``on_success`` sink for successful outcomes, the ``on_failure`` sink for
failed ones.  Sinks are pluggable targets (queues, topics, nested
functions, event buses) implementing the ``Sink`` protocol and resolved
by address through the ``SinkRegistry``.

A delivery failure is reported as a distinct routing status; it never
changes the outcome of the invocation it belongs to.
"""
