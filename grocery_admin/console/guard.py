# grocery_admin/console/guard.py
from typing import Any, Callable


class PendingMutation:
    """
    Allows one mutating request at a time per page.

    While a call is running, further run() calls return None without
    invoking anything. The busy flag is cleared afterwards, also when
    the call raises.
    """

    def __init__(self) -> None:
        self.busy = False

    def run(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        if self.busy:
            return None
        self.busy = True
        try:
            return fn(*args, **kwargs)
        finally:
            self.busy = False
