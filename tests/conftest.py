import socket
import sys
from pathlib import Path
from typing import Any, Generator

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


class NetworkAccessError(RuntimeError):
    """An exchange client reached for the network inside the test suite."""


def _refuse(address: Any) -> NetworkAccessError:
    return NetworkAccessError(
        f"exchange client tried to reach {address}; inject a fake client "
        "through CryptopiaTrader(public=..., private=...) instead"
    )


@pytest.fixture(scope="session", autouse=True)
def _no_live_exchange() -> Generator[None, None, None]:
    """Fail any test that lets a real ccxt client open a connection."""

    class OfflineSocket(socket.socket):
        def connect(self, address):  # type: ignore[override]
            raise _refuse(address)

        def connect_ex(self, address):  # type: ignore[override]
            raise OSError(str(_refuse(address)))

    def offline_create_connection(address: Any, *args: Any, **kwargs: Any) -> socket.socket:
        raise _refuse(address)

    with pytest.MonkeyPatch.context() as patcher:
        patcher.setattr(socket, "socket", OfflineSocket)
        patcher.setattr(socket, "create_connection", offline_create_connection)
        yield
