"""wdkforge run report — Rich rendering of a ``RunResult``.

Modules
-------
renderer
    ``RunReportRenderer`` turns a ``RunResult`` into Rich renderables: a
    per-project table of build and package outcomes plus failure details.
"""
