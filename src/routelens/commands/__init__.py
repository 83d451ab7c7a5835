"""Built-in CLI commands for routelens.

* :mod:`~routelens.commands.scan` -- extract routes and schemas and emit
  OpenAPI or a route table.
* :mod:`~routelens.commands.detect` -- report which frameworks a project
  uses.
* :mod:`~routelens.commands.frameworks` -- list the registered adapters.

Each module exports a plain callback function registered directly on the
root app.
"""
