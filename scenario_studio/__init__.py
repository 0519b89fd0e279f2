"""scenario_studio - scripted scenario orchestration for agent demos.

Drives an authored sequence of tool and text steps through a timer-paced
run, suspending on human decisions (interrupts) and external completion
signals (async gates), and derives progress and render views from the
completed-step set.
"""

__version__ = "0.3.0"
