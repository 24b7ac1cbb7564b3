"""signalpost: routes function invocation outcomes to destinations.

A function invocation ends in exactly one of two ways: the handler
returns, or an error escapes it.  signalpost classifies that terminal
state and asynchronously delivers an envelope describing it to the
destination configured for the outcome:

  - ``on_success`` / ``on_failure`` destinations, both optional
  - queue, topic, nested-function and event-bus sinks
  - delivery failures reported separately from invocation failures
  - fire-and-forget delivery on a dedicated pool
"""

__version__ = "0.1.0"
__description__ = "Success/failure destination routing for function invocations"

from signalpost.core.runtime import FunctionRuntime, InvocationHandle
from signalpost.models.destinations import DestinationConfig
from signalpost.routing.registry import SinkRegistry
from signalpost.routing.router import DestinationRouter

__all__ = [
    "FunctionRuntime",
    "InvocationHandle",
    "DestinationConfig",
    "DestinationRouter",
    "SinkRegistry",
    "__version__",
]
