"""Built-in CLI sub-commands for cachegate.

* :mod:`~cachegate.commands.config` -- view and modify global settings.
* :mod:`~cachegate.commands.stores` -- list, install, activate, and clear stores.
* :mod:`~cachegate.commands.fetch` -- run one request through the engine.
* :mod:`~cachegate.commands.sync` -- inspect and drain the replay queue.

Multi-command groups export a :class:`typer.Typer` sub-application;
single commands export a plain callback registered on the root app.
"""
