"""Built-in CLI sub-commands for simpleha.

* :mod:`~simpleha.commands.service` -- add, inspect and switch services.
* :mod:`~simpleha.commands.auth` -- browser login and token status.
* :mod:`~simpleha.commands.entities` -- read states and call services.
* :mod:`~simpleha.commands.dashboard` -- custom tabs and entity selection.
* :mod:`~simpleha.commands.transfer` -- export and import services.
* :mod:`~simpleha.commands.config` -- view and modify global settings.

Multi-command groups export a :class:`typer.Typer` sub-application; single
commands are plain functions registered on the root app.
"""
