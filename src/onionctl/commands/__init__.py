"""Action handlers behind the root ``onionctl`` command.

Each handler builds the relevant service from the AppContext workspace,
runs it, and hands the ServiceResult to ``AppContext.emit``.
"""

from onionctl.commands.create import run_create
from onionctl.commands.listing import run_list, run_test
from onionctl.commands.remove import run_remove
from onionctl.commands.stop import run_stop

__all__ = ["run_create", "run_list", "run_remove", "run_stop", "run_test"]
