"""Built-in CLI sub-commands for apiharmony.

* :mod:`~apiharmony.commands.inspect` -- load a specification and show its
  summary, info block, endpoints, a single operation, the schema dependency
  view, or the bundled YAML.
* :mod:`~apiharmony.commands.config` -- view and modify global settings.

``inspect`` exports plain callback functions registered directly on the root
app; ``config`` exports a :class:`typer.Typer` sub-application.
"""
